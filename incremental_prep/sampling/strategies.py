"""
Sampling strategies for staged rule discovery.

Provides seeded random, stratified-by-label and adaptive sampling of a
DataFrame, plus a reservoir sampler for chunked input that does not fit in
memory.

All strategies keep the original row order and index of the sampled rows and
draw from an explicit ``numpy.random.Generator`` so every call is reproducible
for a given seed.
"""

import logging
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from incremental_prep.core.cancellation import (
    CancellationToken,
    check_cancelled,
    check_periodically,
)
from incremental_prep.core.constants import (
    ADAPTIVE_MAX_CARDINALITY_RATIO,
    ADAPTIVE_MAX_CLASSES,
    ADAPTIVE_MIN_CLASSES,
    ADAPTIVE_MIN_ROWS_PER_CLASS,
    DEFAULT_DISTRIBUTION_TOLERANCE,
    DEFAULT_RANDOM_SEED,
    NULL_STRATUM_LABEL,
)

logger = logging.getLogger(__name__)


def calculate_sample_size(total_rows: int, ratio: float) -> int:
    """round(n * ratio), clamped to [1, n] for non-empty input."""
    if total_rows <= 0:
        return 0
    return max(1, min(total_rows, int(round(total_rows * ratio))))


def stratum_labels(data: pd.DataFrame, label_column: str) -> pd.Series:
    """Label values as strings, with nulls collected in their own stratum."""
    labels = data[label_column]
    return labels.astype(object).where(labels.notna(), NULL_STRATUM_LABEL).astype(str)


class SamplingStrategy(ABC):
    """Base class for DataFrame sampling strategies."""

    name: str = "base"

    def __init__(self, random_seed: Optional[int] = DEFAULT_RANDOM_SEED):
        self.random_seed = random_seed

    def _rng(self) -> np.random.Generator:
        return np.random.default_rng(self.random_seed)

    @abstractmethod
    def sample(
        self,
        data: pd.DataFrame,
        ratio: float,
        cancellation: Optional[CancellationToken] = None
    ) -> pd.DataFrame:
        """Draw a sample of roughly ``ratio`` of the rows."""

    @abstractmethod
    def validate(self, data: pd.DataFrame, sample: pd.DataFrame, ratio: float) -> bool:
        """Check the drawn sample against the strategy's guarantee."""


class RandomSamplingStrategy(SamplingStrategy):
    """
    Uniform sampling without replacement.

    Example:
        >>> strategy = RandomSamplingStrategy(random_seed=42)
        >>> len(strategy.sample(df_with_1000_rows, 0.1))
        100
    """

    name = "random"

    def sample(
        self,
        data: pd.DataFrame,
        ratio: float,
        cancellation: Optional[CancellationToken] = None
    ) -> pd.DataFrame:
        size = calculate_sample_size(len(data), ratio)
        check_cancelled(cancellation)
        positions = np.sort(self._rng().choice(len(data), size=size, replace=False))
        return data.iloc[positions].copy()

    def validate(self, data: pd.DataFrame, sample: pd.DataFrame, ratio: float) -> bool:
        return abs(len(sample) - calculate_sample_size(len(data), ratio)) <= 1


class StratifiedSamplingStrategy(SamplingStrategy):
    """
    Samples each label class separately so class proportions are preserved.

    Every stratum contributes max(1, round(stratum_size * ratio)) rows, capped
    at the stratum size. Missing labels form their own "NULL" stratum.

    Attributes:
        label_column: Column holding the class labels
        distribution_tolerance: Maximum allowed drift of any class proportion
    """

    name = "stratified"

    def __init__(
        self,
        label_column: str,
        random_seed: Optional[int] = DEFAULT_RANDOM_SEED,
        distribution_tolerance: float = DEFAULT_DISTRIBUTION_TOLERANCE
    ):
        super().__init__(random_seed)
        self.label_column = label_column
        self.distribution_tolerance = distribution_tolerance

    def sample(
        self,
        data: pd.DataFrame,
        ratio: float,
        cancellation: Optional[CancellationToken] = None
    ) -> pd.DataFrame:
        labels = stratum_labels(data, self.label_column)
        rng = self._rng()

        selected: List[np.ndarray] = []
        for label, positions in labels.groupby(labels, sort=True).indices.items():
            check_cancelled(cancellation)
            size = min(len(positions), max(1, int(round(len(positions) * ratio))))
            selected.append(rng.choice(positions, size=size, replace=False))
            logger.debug(f"Stratum '{label}': {size} of {len(positions)} rows")

        if not selected:
            return data.iloc[0:0].copy()

        positions = np.sort(np.concatenate(selected))
        return data.iloc[positions].copy()

    def validate(self, data: pd.DataFrame, sample: pd.DataFrame, ratio: float) -> bool:
        return self.max_proportion_drift(data, sample) <= self.distribution_tolerance

    def max_proportion_drift(self, data: pd.DataFrame, sample: pd.DataFrame) -> float:
        """Largest absolute difference between a class's share in data and sample."""
        if len(data) == 0 or len(sample) == 0:
            return 0.0
        original = stratum_labels(data, self.label_column).value_counts(normalize=True)
        sampled = stratum_labels(sample, self.label_column).value_counts(normalize=True)
        drift = original.subtract(sampled, fill_value=0.0).abs()
        return float(drift.max())


def choose_strategy(
    data: pd.DataFrame,
    label_column: Optional[str]
) -> Tuple[str, str]:
    """
    Pick "stratified" or "random" for a dataset and explain why.

    Stratification needs a label column that exists and looks like a class
    label: between 2 and 100 distinct values, cardinality ratio under 0.5 and
    at least 5 rows per class on average.

    Returns:
        Tuple of (strategy name, reason)
    """
    if not label_column:
        return RandomSamplingStrategy.name, "no label column configured"
    if label_column not in data.columns:
        return RandomSamplingStrategy.name, f"label column '{label_column}' not found"

    classes = data[label_column].nunique(dropna=False)
    rows = len(data)

    if classes < ADAPTIVE_MIN_CLASSES:
        return RandomSamplingStrategy.name, f"label column has only {classes} class"
    if classes > ADAPTIVE_MAX_CLASSES:
        return RandomSamplingStrategy.name, f"label column has {classes} classes (> {ADAPTIVE_MAX_CLASSES})"
    if rows and classes / rows >= ADAPTIVE_MAX_CARDINALITY_RATIO:
        return RandomSamplingStrategy.name, f"label cardinality ratio {classes / rows:.2f} is too high"
    if rows / classes < ADAPTIVE_MIN_ROWS_PER_CLASS:
        return RandomSamplingStrategy.name, f"only {rows / classes:.1f} rows per class on average"

    return StratifiedSamplingStrategy.name, f"label column '{label_column}' has {classes} balanced-enough classes"


class AdaptiveSamplingStrategy(SamplingStrategy):
    """
    Chooses stratified sampling when the label column supports it, random otherwise.

    The choice and its reason are kept on the instance after each call.
    """

    name = "adaptive"

    def __init__(
        self,
        label_column: Optional[str] = None,
        random_seed: Optional[int] = DEFAULT_RANDOM_SEED,
        distribution_tolerance: float = DEFAULT_DISTRIBUTION_TOLERANCE
    ):
        super().__init__(random_seed)
        self.label_column = label_column
        self.distribution_tolerance = distribution_tolerance
        self.selected: Optional[SamplingStrategy] = None
        self.reason: str = ""

    def _select(self, data: pd.DataFrame) -> SamplingStrategy:
        name, self.reason = choose_strategy(data, self.label_column)
        if name == StratifiedSamplingStrategy.name:
            self.selected = StratifiedSamplingStrategy(
                self.label_column, self.random_seed, self.distribution_tolerance
            )
        else:
            self.selected = RandomSamplingStrategy(self.random_seed)
        logger.info(f"Adaptive sampling selected {self.selected.name}: {self.reason}")
        return self.selected

    def sample(
        self,
        data: pd.DataFrame,
        ratio: float,
        cancellation: Optional[CancellationToken] = None
    ) -> pd.DataFrame:
        return self._select(data).sample(data, ratio, cancellation)

    def validate(self, data: pd.DataFrame, sample: pd.DataFrame, ratio: float) -> bool:
        strategy = self.selected or self._select(data)
        return strategy.validate(data, sample, ratio)


class ReservoirSampler:
    """
    Fixed-size uniform sample over a stream of DataFrame chunks (Algorithm R).

    Memory stays O(sample_size) regardless of how many rows are streamed,
    which makes it suitable for ``pd.read_csv(..., chunksize=...)`` input.

    Example:
        >>> sampler = ReservoirSampler(sample_size=1000, random_seed=42)
        >>> for chunk in pd.read_csv("big.csv", chunksize=50000):
        ...     sampler.add_chunk(chunk)
        >>> sample = sampler.get_sample()
    """

    def __init__(self, sample_size: int, random_seed: Optional[int] = DEFAULT_RANDOM_SEED):
        if sample_size <= 0:
            raise ValueError(f"sample_size must be positive, got {sample_size}")
        self.sample_size = sample_size
        self.items_seen = 0
        self._rng = np.random.default_rng(random_seed)
        self._rows: List[pd.DataFrame] = []
        self._order: List[int] = []

    def add_chunk(self, chunk: pd.DataFrame, cancellation: Optional[CancellationToken] = None) -> None:
        """Offer every row of ``chunk`` to the reservoir."""
        for position in range(len(chunk)):
            check_periodically(cancellation, position)

            self.items_seen += 1
            row = chunk.iloc[position:position + 1]

            if len(self._rows) < self.sample_size:
                self._rows.append(row)
                self._order.append(self.items_seen)
            else:
                # Replace with probability k/n
                j = int(self._rng.integers(0, self.items_seen))
                if j < self.sample_size:
                    self._rows[j] = row
                    self._order[j] = self.items_seen

    def add_chunks(self, chunks: Iterable[pd.DataFrame], cancellation: Optional[CancellationToken] = None) -> None:
        for chunk in chunks:
            self.add_chunk(chunk, cancellation)

    def get_sample(self) -> pd.DataFrame:
        """Sampled rows in stream order."""
        if not self._rows:
            return pd.DataFrame()
        ordered = [row for _, row in sorted(zip(self._order, self._rows), key=lambda pair: pair[0])]
        return pd.concat(ordered)
