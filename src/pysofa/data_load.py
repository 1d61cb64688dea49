"""Reading source tables from disk and writing score tables.

Source tables are looked up as ``<name>.parquet`` or ``<name>.csv`` in a
directory. Scores are written as a full replacement of the target file.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Iterable, Optional, Union

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from .table import TABLE_SCHEMAS, SofaInputs

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".parquet", ".csv")


def _check_suffix(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise ValueError(
            f"Unsupported file format '{path.suffix}' for {path}. "
            f"Supported: {', '.join(SUPPORTED_SUFFIXES)}"
        )
    return suffix


def read_table(path: Union[str, Path], name: Optional[str] = None) -> pd.DataFrame:
    """Read one source table from a parquet or CSV file.

    Args:
        path: File path
        name: Table name; when known its time columns are parsed as datetimes

    Returns:
        The table as a DataFrame

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the suffix is neither ``.parquet`` nor ``.csv``
    """
    path = Path(path)
    suffix = _check_suffix(path)
    if not path.exists():
        raise FileNotFoundError(f"Table file not found: {path}")

    time_cols = TABLE_SCHEMAS[name]["time"] if name in TABLE_SCHEMAS else []
    if suffix == ".parquet":
        frame = pq.read_table(path).to_pandas()
    else:
        frame = pd.read_csv(path)

    for col in time_cols:
        if col in frame.columns:
            frame[col] = pd.to_datetime(frame[col], errors="coerce")

    logger.debug("Read %s: %d rows", path.name, len(frame))
    return frame


def _find_table(directory: Path, name: str) -> Optional[Path]:
    for suffix in SUPPORTED_SUFFIXES:
        candidate = directory / f"{name}{suffix}"
        if candidate.exists():
            return candidate
    return None


def load_inputs(
    directory: Union[str, Path],
    tables: Optional[Iterable[str]] = None,
) -> SofaInputs:
    """Build a :class:`SofaInputs` container from files in ``directory``.

    Args:
        directory: Directory holding ``<table>.parquet`` or ``<table>.csv``
        tables: Table names to load (default: all known tables); tables not
            found on disk fall back to empty frames

    Returns:
        The validated input container

    Raises:
        FileNotFoundError: If ``icustays`` is missing

    Examples:
        >>> inputs = load_inputs('data/mimic_demo')
        >>> inputs.stay_ids[:3]
    """
    directory = Path(directory)
    wanted = list(tables) if tables is not None else list(TABLE_SCHEMAS)
    if "icustays" not in wanted:
        wanted.insert(0, "icustays")

    frames: Dict[str, pd.DataFrame] = {}
    for name in wanted:
        if name not in TABLE_SCHEMAS:
            raise ValueError(f"Unknown table '{name}'")
        path = _find_table(directory, name)
        if path is None:
            if name == "icustays":
                raise FileNotFoundError(f"Required table 'icustays' not found in {directory}")
            logger.info("Table %s not found in %s, using an empty table", name, directory)
            continue
        frames[name] = read_table(path, name)

    inputs = SofaInputs(**frames)
    logger.info("Loaded %r", inputs)
    return inputs


def write_scores(scores: pd.DataFrame, path: Union[str, Path]) -> Path:
    """Write a score table, atomically replacing any existing file.

    The table is written to a temporary file next to ``path`` and moved into
    place, so readers never observe a partially written file.

    Args:
        scores: Output of :func:`pysofa.sofa.compute_sofa`
        path: Target ``.parquet`` or ``.csv`` file

    Returns:
        The target path
    """
    path = Path(path)
    suffix = _check_suffix(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.stem}-", suffix=suffix, dir=path.parent)
    os.close(fd)
    try:
        if suffix == ".parquet":
            pq.write_table(pa.Table.from_pandas(scores, preserve_index=False), tmp_name)
        else:
            scores.to_csv(tmp_name, index=False)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise

    logger.info("Wrote %d score rows to %s", len(scores), path)
    return path


__all__ = ["SUPPORTED_SUFFIXES", "read_table", "load_inputs", "write_scores"]
