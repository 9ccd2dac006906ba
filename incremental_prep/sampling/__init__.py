"""Row sampling for the discovery stages."""

from .engine import SamplingEngine
from .strategies import (
    AdaptiveSamplingStrategy,
    RandomSamplingStrategy,
    ReservoirSampler,
    SamplingStrategy,
    StratifiedSamplingStrategy,
)

__all__ = [
    'SamplingEngine',
    'SamplingStrategy',
    'RandomSamplingStrategy',
    'StratifiedSamplingStrategy',
    'AdaptiveSamplingStrategy',
    'ReservoirSampler',
]
