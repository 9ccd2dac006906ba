"""
Sampling Engine - draws the per-stage samples for incremental discovery.

The engine validates its inputs, picks a strategy from the SamplingConfig,
draws the sample, and checks the result against the strategy's guarantee
(size for random sampling, class proportions for stratified sampling). A
sample that fails its check is still returned; the failure is logged.
"""

import logging
from typing import Callable, Iterable, Optional

import pandas as pd

from incremental_prep.core.cancellation import CancellationToken, check_cancelled
from incremental_prep.core.config import SamplingConfig, SamplingStrategyType
from incremental_prep.core.exceptions import (
    InvalidSampleRatioError,
    NullDatasetError,
    OperationCancelledError,
    PreconditionError,
    SamplingError,
)
from incremental_prep.sampling.strategies import (
    AdaptiveSamplingStrategy,
    RandomSamplingStrategy,
    ReservoirSampler,
    SamplingStrategy,
    StratifiedSamplingStrategy,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


class SamplingEngine:
    """
    Draws reproducible samples of a DataFrame.

    Example:
        >>> engine = SamplingEngine()
        >>> config = SamplingConfig(label_column="churned", random_seed=7)
        >>> stage_1 = engine.sample(df, 0.01, config)
        >>> len(stage_1) == round(len(df) * 0.01)
        True
    """

    def __init__(self, default_config: Optional[SamplingConfig] = None):
        self.default_config = default_config or SamplingConfig()

    def sample(
        self,
        data: pd.DataFrame,
        ratio: float,
        config: Optional[SamplingConfig] = None,
        progress: Optional[ProgressCallback] = None,
        cancellation: Optional[CancellationToken] = None
    ) -> pd.DataFrame:
        """
        Draw a sample of ``ratio`` of the rows.

        Args:
            data: Full dataset
            ratio: Fraction of rows to draw, 0 < ratio <= 1
            config: Strategy, label column and seed (engine default when None)
            progress: Called with 0.0, 0.5 and 1.0 as sampling proceeds
            cancellation: Optional cancellation token

        Returns:
            Sampled rows in original order (a copy for ratio 1.0 or empty input)

        Raises:
            NullDatasetError: If data is None
            InvalidSampleRatioError: If ratio is outside (0, 1]
            OperationCancelledError: If cancellation was requested
            SamplingError: If the strategy itself fails
        """
        if data is None:
            raise NullDatasetError(parameter="data")
        if ratio is None or not 0 < ratio <= 1:
            raise InvalidSampleRatioError(ratio)

        config = config or self.default_config
        check_cancelled(cancellation)
        _report(progress, 0.0)

        if len(data) == 0 or ratio == 1.0:
            _report(progress, 1.0)
            return data.copy()

        strategy = self.create_strategy(data, config)
        logger.debug(
            f"Sampling {ratio:.2%} of {len(data):,} rows with {strategy.name} strategy "
            f"(seed {config.random_seed})"
        )

        try:
            sample = strategy.sample(data, ratio, cancellation)
        except (OperationCancelledError, PreconditionError):
            raise
        except Exception as e:
            raise SamplingError(
                f"{strategy.name} sampling failed: {str(e)}",
                strategy=strategy.name,
                original_exception=e,
            ) from e
        _report(progress, 0.5)

        check_cancelled(cancellation)
        if not strategy.validate(data, sample, ratio):
            logger.warning(
                f"{strategy.name} sample of {len(sample):,} rows failed validation "
                f"(ratio {ratio}, {len(data):,} rows)"
            )

        _report(progress, 1.0)
        logger.info(f"Drew {len(sample):,} of {len(data):,} rows ({strategy.name}, ratio {ratio})")
        return sample

    @staticmethod
    def create_strategy(data: pd.DataFrame, config: SamplingConfig) -> SamplingStrategy:
        """Resolve the configured strategy type to a strategy instance."""
        seed = config.random_seed
        tolerance = config.distribution_tolerance
        strategy_type = config.strategy

        if strategy_type == SamplingStrategyType.AUTO:
            has_label = bool(config.label_column) and config.label_column in data.columns
            strategy_type = SamplingStrategyType.STRATIFIED if has_label else SamplingStrategyType.RANDOM
            logger.debug(f"Auto sampling resolved to {strategy_type.value}")

        if strategy_type == SamplingStrategyType.STRATIFIED:
            if not config.label_column or config.label_column not in data.columns:
                raise PreconditionError(
                    f"Stratified sampling requires an existing label column, got '{config.label_column}'",
                    parameter="label_column",
                    value=config.label_column,
                )
            return StratifiedSamplingStrategy(config.label_column, seed, tolerance)

        if strategy_type == SamplingStrategyType.ADAPTIVE:
            return AdaptiveSamplingStrategy(config.label_column, seed, tolerance)

        return RandomSamplingStrategy(seed)

    def sample_chunks(
        self,
        chunks: Iterable[pd.DataFrame],
        sample_size: int,
        config: Optional[SamplingConfig] = None,
        cancellation: Optional[CancellationToken] = None
    ) -> pd.DataFrame:
        """
        Reservoir-sample ``sample_size`` rows from a stream of chunks.

        Example:
            >>> chunks = pd.read_csv("big.csv", chunksize=100_000)
            >>> sample = engine.sample_chunks(chunks, sample_size=5000)
        """
        if chunks is None:
            raise NullDatasetError(parameter="chunks")
        config = config or self.default_config

        sampler = ReservoirSampler(sample_size, config.random_seed)
        sampler.add_chunks(chunks, cancellation)
        sample = sampler.get_sample()
        logger.info(f"Reservoir sampled {len(sample):,} of {sampler.items_seen:,} streamed rows")
        return sample


def _report(progress: Optional[ProgressCallback], value: float) -> None:
    if progress is not None:
        progress(value)
