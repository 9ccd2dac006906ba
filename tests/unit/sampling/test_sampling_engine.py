"""
Tests for SamplingEngine and the sampling strategies.

This test module covers:
1. Input validation (null data, ratio bounds)
2. Random sample size and reproducibility
3. Stratified class proportions
4. Adaptive strategy selection
5. ReservoirSampler over chunked input
"""

from unittest.mock import Mock

import numpy as np
import pandas as pd
import pytest

from incremental_prep.core.cancellation import CancellationToken
from incremental_prep.core.config import SamplingConfig, SamplingStrategyType
from incremental_prep.core.exceptions import (
    InvalidSampleRatioError,
    NullDatasetError,
    OperationCancelledError,
    PreconditionError,
)
from incremental_prep.sampling import (
    AdaptiveSamplingStrategy,
    RandomSamplingStrategy,
    ReservoirSampler,
    SamplingEngine,
    StratifiedSamplingStrategy,
)
from incremental_prep.sampling.strategies import calculate_sample_size, choose_strategy


@pytest.fixture
def labelled_frame():
    """1000 rows, 70% class 'a' and 30% class 'b'."""
    return pd.DataFrame({
        'value': np.arange(1000),
        'label': ['a'] * 700 + ['b'] * 300,
    })


# ============================================================================
# INPUT VALIDATION
# ============================================================================


@pytest.mark.unit
class TestSamplingEngineValidation:
    """Test precondition checks."""

    def test_null_data(self):
        with pytest.raises(NullDatasetError):
            SamplingEngine().sample(None, 0.5)

    @pytest.mark.parametrize("ratio", [0, -0.1, 1.01, None])
    def test_invalid_ratio(self, labelled_frame, ratio):
        with pytest.raises(InvalidSampleRatioError):
            SamplingEngine().sample(labelled_frame, ratio)

    def test_invalid_ratio_is_value_error(self, labelled_frame):
        with pytest.raises(ValueError):
            SamplingEngine().sample(labelled_frame, 2.0)

    def test_stratified_without_label_column(self, labelled_frame):
        config = SamplingConfig(strategy=SamplingStrategyType.STRATIFIED, label_column="missing")

        with pytest.raises(PreconditionError):
            SamplingEngine().sample(labelled_frame, 0.1, config)

    def test_cancelled(self, labelled_frame):
        with pytest.raises(OperationCancelledError):
            SamplingEngine().sample(labelled_frame, 0.1, cancellation=CancellationToken.cancelled())


# ============================================================================
# RANDOM SAMPLING
# ============================================================================


@pytest.mark.unit
class TestRandomSampling:
    """Test uniform sampling."""

    @pytest.mark.parametrize("rows,ratio,expected", [
        (1000, 0.1, 100),
        (1000, 0.001, 1),
        (1000, 0.0001, 1),
        (999, 0.5, 500),
        (10, 0.25, 2),
    ])
    def test_sample_size(self, rows, ratio, expected):
        frame = pd.DataFrame({'value': range(rows)})

        sample = SamplingEngine().sample(frame, ratio, SamplingConfig(strategy=SamplingStrategyType.RANDOM))

        assert len(sample) == expected
        assert len(sample) == calculate_sample_size(rows, ratio)

    def test_reproducible_for_seed(self, labelled_frame):
        config = SamplingConfig(strategy=SamplingStrategyType.RANDOM, random_seed=7)

        first = SamplingEngine().sample(labelled_frame, 0.1, config)
        second = SamplingEngine().sample(labelled_frame, 0.1, config)

        assert first.index.tolist() == second.index.tolist()

    def test_keeps_original_order_and_index(self, labelled_frame):
        sample = RandomSamplingStrategy(random_seed=1).sample(labelled_frame, 0.2)

        assert sample.index.is_monotonic_increasing
        assert (sample['value'] == sample.index).all()

    def test_full_ratio_returns_copy(self, labelled_frame):
        sample = SamplingEngine().sample(labelled_frame, 1.0)

        assert sample.equals(labelled_frame)
        assert sample is not labelled_frame

    def test_empty_frame(self):
        frame = pd.DataFrame({'value': []})

        assert len(SamplingEngine().sample(frame, 0.5)) == 0

    def test_progress_callback(self, labelled_frame):
        progress = Mock()

        SamplingEngine().sample(labelled_frame, 0.1, progress=progress)

        assert [c.args[0] for c in progress.call_args_list] == [0.0, 0.5, 1.0]


# ============================================================================
# STRATIFIED / ADAPTIVE SAMPLING
# ============================================================================


@pytest.mark.unit
class TestStratifiedSampling:
    """Test class proportion preservation."""

    def test_proportions_preserved(self, labelled_frame):
        config = SamplingConfig(strategy=SamplingStrategyType.STRATIFIED, label_column='label')

        sample = SamplingEngine().sample(labelled_frame, 0.1, config)
        counts = sample['label'].value_counts(normalize=True)

        assert abs(counts['a'] - 0.7) <= 0.05
        assert abs(counts['b'] - 0.3) <= 0.05

    def test_every_class_represented(self):
        frame = pd.DataFrame({'label': ['big'] * 995 + ['rare'] * 5})

        sample = StratifiedSamplingStrategy('label').sample(frame, 0.01)

        assert set(sample['label']) == {'big', 'rare'}

    @pytest.mark.parametrize("majority,minority", [(9000, 1000), (9900, 100), (9990, 10)])
    def test_heavily_imbalanced_labels(self, majority, minority):
        frame = pd.DataFrame({
            'value': np.arange(majority + minority),
            'label': ['common'] * majority + ['rare'] * minority,
        })
        strategy = StratifiedSamplingStrategy('label', distribution_tolerance=0.01)

        sample = strategy.sample(frame, 0.1)
        counts = sample['label'].value_counts()

        assert counts['common'] == majority // 10
        assert counts['rare'] == minority // 10
        assert strategy.max_proportion_drift(frame, sample) == pytest.approx(0.0)
        assert strategy.validate(frame, sample, 0.1)

    def test_null_labels_form_own_stratum(self):
        frame = pd.DataFrame({'label': ['a'] * 50 + [None] * 50})

        sample = StratifiedSamplingStrategy('label').sample(frame, 0.1)

        assert sample['label'].isna().sum() == 5

    def test_validate_drift(self, labelled_frame):
        strategy = StratifiedSamplingStrategy('label', distribution_tolerance=0.05)
        skewed = labelled_frame.iloc[:100]

        assert strategy.max_proportion_drift(labelled_frame, skewed) == pytest.approx(0.3)
        assert not strategy.validate(labelled_frame, skewed, 0.1)

    def test_auto_uses_label_column(self, labelled_frame):
        config = SamplingConfig(label_column='label')

        strategy = SamplingEngine.create_strategy(labelled_frame, config)

        assert isinstance(strategy, StratifiedSamplingStrategy)


@pytest.mark.unit
class TestAdaptiveSampling:
    """Test the stratified/random choice."""

    def test_chooses_stratified_for_balanced_labels(self, labelled_frame):
        name, _ = choose_strategy(labelled_frame, 'label')

        assert name == "stratified"

    @pytest.mark.parametrize("label_column,reason", [
        (None, "no label column configured"),
        ('absent', "label column 'absent' not found"),
    ])
    def test_falls_back_to_random(self, labelled_frame, label_column, reason):
        assert choose_strategy(labelled_frame, label_column) == ("random", reason)

    def test_unique_labels_fall_back(self, labelled_frame):
        name, reason = choose_strategy(labelled_frame, 'value')

        assert name == "random"
        assert "classes" in reason

    def test_strategy_records_choice(self, labelled_frame):
        strategy = AdaptiveSamplingStrategy('label')

        strategy.sample(labelled_frame, 0.1)

        assert isinstance(strategy.selected, StratifiedSamplingStrategy)
        assert strategy.reason


# ============================================================================
# RESERVOIR SAMPLING
# ============================================================================


@pytest.mark.unit
class TestReservoirSampler:
    """Test reservoir sampling over chunks."""

    def test_fills_up_to_size(self):
        sampler = ReservoirSampler(sample_size=50)

        sampler.add_chunks(pd.DataFrame({'v': range(i, i + 100)}) for i in range(0, 500, 100))

        assert sampler.items_seen == 500
        assert len(sampler.get_sample()) == 50

    def test_small_stream_kept_entirely(self):
        sampler = ReservoirSampler(sample_size=50)
        sampler.add_chunk(pd.DataFrame({'v': range(10)}))

        assert sampler.get_sample()['v'].tolist() == list(range(10))

    def test_sample_in_stream_order(self):
        sampler = ReservoirSampler(sample_size=20, random_seed=3)
        sampler.add_chunk(pd.DataFrame({'v': range(1000)}))

        values = sampler.get_sample()['v'].tolist()
        assert values == sorted(values)

    def test_reproducible(self):
        frame = pd.DataFrame({'v': range(500)})
        first = ReservoirSampler(sample_size=25, random_seed=11)
        second = ReservoirSampler(sample_size=25, random_seed=11)
        first.add_chunk(frame)
        second.add_chunk(frame)

        assert first.get_sample()['v'].tolist() == second.get_sample()['v'].tolist()

    def test_empty(self):
        assert ReservoirSampler(sample_size=5).get_sample().empty

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            ReservoirSampler(sample_size=0)

    def test_engine_sample_chunks(self):
        chunks = [pd.DataFrame({'v': range(i, i + 10)}) for i in range(0, 100, 10)]

        sample = SamplingEngine().sample_chunks(iter(chunks), sample_size=15)

        assert len(sample) == 15

    def test_engine_sample_chunks_none(self):
        with pytest.raises(NullDatasetError):
            SamplingEngine().sample_chunks(None, sample_size=5)
