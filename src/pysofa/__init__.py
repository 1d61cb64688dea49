"""pysofa - hourly SOFA scoring for ICU stays.

This package derives clean inputs from raw ICU event tables (vasopressor
infusions, weights, vital signs, labs, blood gases, urine output), places
them on a per-stay hourly grid and computes the Sequential Organ Failure
Assessment score over a trailing 24-hour window.
"""

from .callbacks import (
    SUBSCORE_COLUMNS,
    sofa_cardio,
    sofa_cns,
    sofa_coag,
    sofa_components,
    sofa_liver,
    sofa_renal,
    sofa_resp,
)
from .config import (
    ItemIdConfig,
    SofaConfig,
    get_config,
    load_config,
    reset_config,
    set_config,
)
from .data_load import load_inputs, read_table, write_scores
from .logging_utils import configure_logging
from .sofa import OUTPUT_COLUMNS, compute_sofa, sofa_window
from .table import SofaInputs
from .ts_utils import hourly_grid

__version__ = "0.1.0"

__all__ = [
    "SUBSCORE_COLUMNS",
    "OUTPUT_COLUMNS",
    "ItemIdConfig",
    "SofaConfig",
    "SofaInputs",
    "compute_sofa",
    "configure_logging",
    "get_config",
    "hourly_grid",
    "load_config",
    "load_inputs",
    "read_table",
    "reset_config",
    "set_config",
    "sofa_cardio",
    "sofa_cns",
    "sofa_coag",
    "sofa_components",
    "sofa_liver",
    "sofa_renal",
    "sofa_resp",
    "sofa_window",
    "write_scores",
]
