"""Data validation and assertion utilities.

Provides assertion functions for validating the structure of the input and
intermediate tables, in the spirit of R's assertthat package but adapted for
pandas.
"""

from typing import Any, List, Optional, Union
import pandas as pd
import numpy as np

class SofaAssertionError(Exception):
    """Raised when a table or argument violates the pipeline contract."""
    pass

def assert_that(condition: bool, msg: Optional[str] = None) -> bool:
    """Assert a condition is True.

    Args:
        condition: Boolean condition to check
        msg: Optional error message

    Returns:
        True if condition is met

    Raises:
        SofaAssertionError: If condition is False

    Examples:
        >>> assert_that(1 + 1 == 2)
        True
        >>> assert_that(False, "This should fail")
        SofaAssertionError: This should fail
    """
    if not condition:
        if msg is None:
            msg = "Assertion failed"
        raise SofaAssertionError(msg)
    return True

def is_data_frame(x: Any) -> bool:
    """Check if x is a pandas DataFrame."""
    return isinstance(x, pd.DataFrame)

def no_na(x: Union[pd.Series, pd.DataFrame, np.ndarray]) -> bool:
    """Check if data contains no NA values."""
    if isinstance(x, pd.DataFrame):
        return not x.isna().any().any()
    elif isinstance(x, (pd.Series, np.ndarray)):
        return not pd.isna(x).any()
    else:
        return not pd.isna(x)

def has_cols(x: pd.DataFrame, cols: Optional[Union[str, List[str]]] = None) -> bool:
    """Check if DataFrame has expected columns.

    Args:
        x: DataFrame to check
        cols: Column name(s) to check for (if None, just checks ncols > 0)
    """
    if cols is None:
        return len(x.columns) > 0

    if isinstance(cols, str):
        cols = [cols]

    return all(col in x.columns for col in cols)

def validate_data_frame(
    df: pd.DataFrame,
    required_cols: Optional[List[str]] = None,
    no_na_cols: Optional[List[str]] = None,
    name: str = "DataFrame",
) -> bool:
    """Validate DataFrame structure and content.

    Args:
        df: DataFrame to validate
        required_cols: Columns that must be present
        no_na_cols: Columns that must not have NA values
        name: Table name used in error messages

    Returns:
        True if all validations pass

    Raises:
        SofaAssertionError: If validation fails
    """
    assert_that(is_data_frame(df), f"{name} must be a DataFrame, got {type(df).__name__}")

    if required_cols:
        missing = [col for col in required_cols if col not in df.columns]
        assert_that(len(missing) == 0,
                   f"{name} is missing required columns: {missing}")

    if no_na_cols:
        for col in no_na_cols:
            assert_that(col in df.columns,
                       f"Column '{col}' not found in {name}")
            assert_that(no_na(df[col]),
                       f"Column '{col}' of {name} contains NA values")

    return True

def assert_has_cols(df: pd.DataFrame, cols: Union[str, List[str]],
                   msg: Optional[str] = None):
    """Assert DataFrame has required columns."""
    if isinstance(cols, str):
        cols = [cols]
    assert_that(has_cols(df, cols),
               msg or f"DataFrame missing columns: {[c for c in cols if c not in df.columns]}")

