"""
Tabular payload adapter

Turns the request's csvData (CSV text or a list of row objects) plus a
target column name into the (rows, labels) form the training service
takes. Missing values are rejected, never imputed.
"""
import io
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Union

import numpy as np
import pandas as pd

from predictive_api.core.exceptions import InvalidInputError

logger = logging.getLogger(__name__)

TabularPayload = Union[str, List[Dict[str, Any]]]


@dataclass
class TabularDataset:
    """Feature rows and labels split out of a table"""
    rows: List[List[float]]
    labels: List[float]
    feature_columns: List[str]
    target_column: str


def _clean_value(value: Any) -> Any:
    """Trim strings; empty strings become missing"""
    if isinstance(value, str):
        value = value.strip()
        return value if value else None
    return value


def _format_positions(mask: pd.Series, limit: int = 5) -> str:
    positions = [str(i) for i in np.flatnonzero(mask.to_numpy())[:limit]]
    more = int(mask.sum()) - len(positions)
    text = ", ".join(positions)
    return f"{text} (+{more} more)" if more > 0 else text


def _check_unique_columns(columns: List[Any]):
    """Column names must be unique after trimming"""
    names = pd.Index([str(column).strip() for column in columns])
    duplicated = names[names.duplicated()].unique().tolist()
    if duplicated:
        raise InvalidInputError(
            "csvData has duplicate column names",
            f"duplicated: {', '.join(duplicated)}"
        )


def load_frame(csv_data: TabularPayload) -> pd.DataFrame:
    """
    Load csvData into a cleaned DataFrame

    Args:
        csv_data: CSV text with a header line, or a list of row objects

    Returns:
        DataFrame with stripped column names and cleaned cells
    """
    if isinstance(csv_data, str):
        if not csv_data.strip():
            raise InvalidInputError("csvData is empty")
        try:
            # Raw header first: read_csv renames duplicates to "name.1"
            header = pd.read_csv(
                io.StringIO(csv_data),
                header=None,
                nrows=1,
                dtype=str,
                keep_default_na=False,
                skipinitialspace=True
            )
            _check_unique_columns(header.iloc[0].tolist())

            frame = pd.read_csv(
                io.StringIO(csv_data),
                dtype=str,
                keep_default_na=False,
                skipinitialspace=True
            )
        except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise InvalidInputError("csvData could not be parsed as CSV", str(e)) from e

    elif isinstance(csv_data, list):
        for i, record in enumerate(csv_data):
            if not isinstance(record, dict):
                raise InvalidInputError("csvData rows must be objects", f"row {i} is {type(record).__name__}")
        frame = pd.DataFrame.from_records(csv_data)

    else:
        raise InvalidInputError(
            "csvData must be CSV text or a list of row objects",
            f"got {type(csv_data).__name__}"
        )

    columns = [str(column).strip() for column in frame.columns]
    _check_unique_columns(columns)
    frame.columns = columns
    for column in frame.columns:
        frame[column] = frame[column].astype(object).map(_clean_value)

    return frame


def _column_to_numeric(name: str, series: pd.Series) -> pd.Series:
    missing = series.isna()
    if missing.any():
        raise InvalidInputError(
            f"column '{name}' has missing values",
            f"rows: {_format_positions(missing)}"
        )

    is_bool = series.map(lambda v: isinstance(v, (bool, np.bool_)))
    numeric = pd.to_numeric(series.where(~is_bool), errors='coerce').astype(float)

    invalid = numeric.isna() | ~np.isfinite(numeric)
    if invalid.any():
        first = series[invalid].iloc[0]
        raise InvalidInputError(
            f"column '{name}' has non-numeric values",
            f"rows: {_format_positions(invalid)}; first value: {first!r}"
        )

    return numeric


def split_target(frame: pd.DataFrame, target_column: str) -> TabularDataset:
    """
    Split a cleaned table into feature rows and labels

    Args:
        frame: output of load_frame()
        target_column: name of the label column

    Returns:
        TabularDataset, features in the table's column order
    """
    target_column = target_column.strip()

    if target_column not in frame.columns:
        raise InvalidInputError(
            f"target column '{target_column}' not found",
            f"available columns: {', '.join(frame.columns)}"
        )

    if len(frame) == 0:
        raise InvalidInputError("csvData contains no data rows")

    feature_columns = [column for column in frame.columns if column != target_column]
    if not feature_columns:
        raise InvalidInputError("csvData has no feature columns besides the target")

    labels = _column_to_numeric(target_column, frame[target_column])
    features = pd.DataFrame(
        {column: _column_to_numeric(column, frame[column]) for column in feature_columns}
    )

    return TabularDataset(
        rows=features.to_numpy(dtype=float).tolist(),
        labels=labels.tolist(),
        feature_columns=feature_columns,
        target_column=target_column,
    )


def build_dataset(csv_data: TabularPayload, target_column: str) -> TabularDataset:
    """Load csvData and split off target_column"""
    frame = load_frame(csv_data)
    dataset = split_target(frame, target_column)
    logger.info(f"Tabular dataset built: {len(dataset.rows)} rows, "
                f"features={dataset.feature_columns}, target='{dataset.target_column}'")
    return dataset
