"""
Feature Encoder

Turns employee records into fixed-width numeric vectors.

Column layout (identical at train and inference time):
    1. numeric features, standardized as (value_or_center - center) / spread
    2. satisfaction features, rescaled from the 1-4 scale to [0, 1]
    3. one one-hot block per categorical feature, in declaration order
    4. binary features (1 for "Yes", else 0)

Numeric centers are means (not medians). Spreads are population standard
deviations floored at 1.0.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from attrition_risk.core.exceptions import EncodingError
from attrition_risk.schemas.employee import EmployeeLike, as_employee

logger = logging.getLogger(__name__)

NUMERIC_FEATURES: Tuple[str, ...] = (
    "Age",
    "MonthlyIncome",
    "YearsAtCompany",
    "DistanceFromHome",
    "TotalWorkingYears",
    "StockOptionLevel",
    "Education",
)
SATISFACTION_FEATURES: Tuple[str, ...] = (
    "JobSatisfaction",
    "EnvironmentSatisfaction",
    "WorkLifeBalance",
)
CATEGORICAL_FEATURES: Tuple[str, ...] = ("Department", "MaritalStatus")
BINARY_FEATURES: Tuple[str, ...] = ("OverTime",)

SATISFACTION_MIDPOINT = 0.5
MIN_SPREAD = 1.0


@dataclass(frozen=True)
class NumericStat:
    name: str
    center: float
    spread: float


@dataclass(frozen=True)
class CategoryList:
    name: str
    categories: Tuple[str, ...]


@dataclass(frozen=True)
class EncodingParameters:
    """
    Immutable snapshot of everything needed to encode a record.

    Computed once from the training set and stored with the trained model;
    every later single-record encode reuses it unchanged.
    """
    numeric: Tuple[NumericStat, ...]
    satisfaction: Tuple[str, ...]
    categorical: Tuple[CategoryList, ...]
    binary: Tuple[str, ...]
    sample_size: int = 0

    @property
    def feature_names(self) -> Tuple[str, ...]:
        names: List[str] = [s.name for s in self.numeric]
        names.extend(self.satisfaction)
        for block in self.categorical:
            names.extend(f"{block.name}={category}" for category in block.categories)
        names.extend(self.binary)
        return tuple(names)

    @property
    def feature_sources(self) -> Tuple[str, ...]:
        """Source field for every column, e.g. ``Department`` for each one-hot column."""
        sources: List[str] = [s.name for s in self.numeric]
        sources.extend(self.satisfaction)
        for block in self.categorical:
            sources.extend(block.name for _ in block.categories)
        sources.extend(self.binary)
        return tuple(sources)

    @property
    def width(self) -> int:
        return (
            len(self.numeric)
            + len(self.satisfaction)
            + sum(len(block.categories) for block in self.categorical)
            + len(self.binary)
        )

    def numeric_stat(self, name: str) -> Optional[NumericStat]:
        for stat in self.numeric:
            if stat.name == name:
                return stat
        return None

    def categories_for(self, name: str) -> Tuple[str, ...]:
        for block in self.categorical:
            if block.name == name:
                return block.categories
        return ()


class FeatureEncoder:
    """Fits EncodingParameters and applies them to records."""

    def __init__(
        self,
        numeric_features: Sequence[str] = NUMERIC_FEATURES,
        satisfaction_features: Sequence[str] = SATISFACTION_FEATURES,
        categorical_features: Sequence[str] = CATEGORICAL_FEATURES,
        binary_features: Sequence[str] = BINARY_FEATURES,
    ):
        self.numeric_features = tuple(numeric_features)
        self.satisfaction_features = tuple(satisfaction_features)
        self.categorical_features = tuple(categorical_features)
        self.binary_features = tuple(binary_features)

    def fit(self, records: Sequence[EmployeeLike]) -> EncodingParameters:
        """Compute centers, spreads and category lists from the training records."""
        if not records:
            raise EncodingError("insufficient data: cannot fit encoding parameters on an empty training set")

        employees = [as_employee(r) for r in records]

        numeric = []
        for name in self.numeric_features:
            values = np.array(
                [float(v) for v in (e.get_field(name) for e in employees) if v is not None],
                dtype=float,
            )
            if values.size == 0:
                # Column absent from the dataset: every value encodes to 0.
                numeric.append(NumericStat(name=name, center=0.0, spread=MIN_SPREAD))
                continue
            center = float(np.mean(values))
            spread = max(float(np.std(values)), MIN_SPREAD)
            numeric.append(NumericStat(name=name, center=center, spread=spread))

        categorical = []
        for name in self.categorical_features:
            seen: Dict[str, None] = {}
            for e in employees:
                value = e.get_field(name)
                if value is not None:
                    seen.setdefault(str(value), None)
            categorical.append(CategoryList(name=name, categories=tuple(seen)))

        params = EncodingParameters(
            numeric=tuple(numeric),
            satisfaction=self.satisfaction_features,
            categorical=tuple(categorical),
            binary=self.binary_features,
            sample_size=len(employees),
        )
        logger.info(f"Fitted encoding parameters on {len(employees)} records: {params.width} features")
        return params

    def transform(self, record: EmployeeLike, params: EncodingParameters) -> np.ndarray:
        """Encode one record into a FeatureVector using fit-time parameters."""
        employee = as_employee(record)
        vector: List[float] = []

        for stat in params.numeric:
            value = _as_float(employee.get_field(stat.name))
            if value is None:
                value = stat.center
            vector.append((value - stat.center) / stat.spread)

        for name in params.satisfaction:
            value = _as_float(employee.get_field(name))
            vector.append(SATISFACTION_MIDPOINT if value is None else (value - 1.0) / 3.0)

        for block in params.categorical:
            value = employee.get_field(block.name)
            # Unseen or missing categories encode to an all-zero block
            vector.extend(
                1.0 if value is not None and str(value) == category else 0.0
                for category in block.categories
            )

        for name in params.binary:
            vector.append(1.0 if _is_yes(employee.get_field(name)) else 0.0)

        encoded = np.asarray(vector, dtype=float)
        validate_vector(encoded, params)
        return encoded

    def transform_many(self, records: Sequence[EmployeeLike], params: EncodingParameters) -> np.ndarray:
        """Encode records into a 2-D feature matrix (rows follow input order)."""
        if not records:
            return np.empty((0, params.width), dtype=float)
        return np.vstack([self.transform(r, params) for r in records])

    def fit_transform(self, records: Sequence[EmployeeLike]) -> Tuple[EncodingParameters, np.ndarray]:
        params = self.fit(records)
        return params, self.transform_many(records, params)


def validate_vector(vector: np.ndarray, params: EncodingParameters) -> None:
    """Raise EncodingError unless the vector matches the parameter layout."""
    if vector.ndim != 1 or vector.shape[0] != params.width:
        raise EncodingError(
            f"Feature vector has {vector.shape[-1] if vector.ndim else 0} values, "
            f"encoding parameters expect {params.width}"
        )
    if not np.all(np.isfinite(vector)):
        raise EncodingError("Feature vector contains non-finite values")


def _as_float(value) -> Optional[float]:
    if value is None:
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return None if np.isnan(result) else result


def _is_yes(value) -> bool:
    if isinstance(value, bool):
        return value
    return isinstance(value, str) and value.strip().lower() == "yes"
