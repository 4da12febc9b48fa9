"""
Record Store

Holds the loaded HR dataset as an ordered sequence of EmployeeRecord rows.
Every parsed row is kept for display; only rows with a usable Age and
Attrition label are handed to training.
"""

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union, IO

import pandas as pd
from pydantic import ValidationError

from attrition_risk.core.exceptions import DataLoadError
from attrition_risk.schemas.employee import (
    EmployeeRecord,
    FIELD_ATTRIBUTES,
    NUMERIC_COLUMNS,
)

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ["Attrition"]

CsvSource = Union[str, Path, bytes, IO[str], IO[bytes]]


@dataclass(frozen=True)
class LoadSummary:
    total_rows: int
    trainable_rows: int
    skipped_rows: int


class RecordStore:
    """Ordered, read-mostly container of employee records."""

    def __init__(self, records: Optional[Sequence[EmployeeRecord]] = None, skipped_rows: int = 0):
        self._records: tuple[EmployeeRecord, ...] = tuple(records or ())
        self.skipped_rows = skipped_rows

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self):
        return iter(self._records)

    def __getitem__(self, index: int) -> EmployeeRecord:
        return self._records[index]

    @property
    def records(self) -> tuple[EmployeeRecord, ...]:
        return self._records

    @classmethod
    def from_records(cls, rows: Iterable[Union[EmployeeRecord, Mapping[str, Any]]]) -> "RecordStore":
        """Build a store from record models or plain mappings keyed by HR column name."""
        records = []
        skipped = 0
        for row in rows:
            if isinstance(row, EmployeeRecord):
                records.append(row)
                continue
            try:
                records.append(EmployeeRecord.model_validate(dict(row)))
            except ValidationError as e:
                skipped += 1
                logger.debug(f"Skipping unparseable record: {e}")
        return cls(records, skipped_rows=skipped)

    @classmethod
    def load_csv(cls, source: CsvSource) -> "RecordStore":
        """
        Parse a CSV dataset with a header row.

        Accepts a path, raw CSV text or bytes, or a file-like object. Quoted
        fields may contain commas. Rows with the wrong number of columns are
        skipped. Raises DataLoadError when the data cannot be read or the
        Attrition column is missing.
        """
        if isinstance(source, bytes):
            source = io.BytesIO(source)
        elif isinstance(source, str) and "\n" in source:
            source = io.StringIO(source)

        bad_lines: List[List[str]] = []

        def _skip_bad_line(fields: List[str]) -> None:
            bad_lines.append(fields)
            return None

        try:
            raw_df = pd.read_csv(
                source,
                dtype=str,
                keep_default_na=False,
                skipinitialspace=True,
                skip_blank_lines=True,
                on_bad_lines=_skip_bad_line,
                engine="python",
            )
        except FileNotFoundError as e:
            raise DataLoadError(f"Dataset file not found: {source}") from e
        except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as e:
            raise DataLoadError(f"Could not parse dataset: {e}") from e

        raw_df.columns = [str(c).strip() for c in raw_df.columns]
        missing = [c for c in REQUIRED_COLUMNS if c not in raw_df.columns]
        if missing:
            raise DataLoadError(f"Dataset is missing required column(s): {', '.join(missing)}")

        # Short rows are padded with NaN by the parser; empty cells stay "" because
        # keep_default_na is off, so any NaN marks a column-count mismatch.
        short_rows = raw_df.isna().any(axis=1)
        raw_df = raw_df[~short_rows]

        df = _normalize_frame(raw_df)
        store = cls.from_records(df.to_dict(orient="records"))
        store.skipped_rows += len(bad_lines) + int(short_rows.sum())

        summary = store.summary()
        logger.info(
            f"Loaded {summary.total_rows} employee records "
            f"({summary.trainable_rows} trainable, {summary.skipped_rows} skipped)"
        )
        return store

    def trainable_records(self) -> List[EmployeeRecord]:
        """Records with a positive Age and a Yes/No Attrition label."""
        return [r for r in self._records if r.is_trainable]

    def labels(self) -> List[int]:
        return [r.label for r in self.trainable_records()]

    def summary(self) -> LoadSummary:
        return LoadSummary(
            total_rows=len(self._records),
            trainable_rows=len(self.trainable_records()),
            skipped_rows=self.skipped_rows,
        )

    def to_frame(self) -> pd.DataFrame:
        """Records as a DataFrame keyed by HR column name (for analytics)."""
        columns = list(FIELD_ATTRIBUTES.keys())
        data = [{col: r.get_field(col) for col in columns} for r in self._records]
        return pd.DataFrame(data, columns=columns)


def _normalize_frame(raw_df: pd.DataFrame) -> pd.DataFrame:
    """Keep known columns, coerce numerics, turn blanks into nulls."""
    known = [c for c in raw_df.columns if c in FIELD_ATTRIBUTES]
    df = raw_df[known].copy()
    for col in known:
        df[col] = df[col].str.strip()
        if col in NUMERIC_COLUMNS:
            df[col] = pd.to_numeric(df[col], errors="coerce")
        else:
            df[col] = df[col].mask(df[col] == "")
    return df.astype(object).where(df.notna(), None)
