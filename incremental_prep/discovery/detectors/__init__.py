"""
Pattern detector plugins and their registry.

The default registry holds the seven built-in detectors. Additional detectors
can be registered on a registry instance and passed to the discovery engine.
"""

from typing import Iterator, List, Type

from incremental_prep.discovery.detectors.base import PatternDetector
from incremental_prep.discovery.detectors.missing_value import MissingValueDetector
from incremental_prep.discovery.detectors.type_inconsistency import TypeInconsistencyDetector
from incremental_prep.discovery.detectors.format_variation import FormatVariationDetector
from incremental_prep.discovery.detectors.outlier import OutlierDetector
from incremental_prep.discovery.detectors.category_variation import CategoryVariationDetector
from incremental_prep.discovery.detectors.encoding_issue import EncodingIssueDetector
from incremental_prep.discovery.detectors.whitespace import WhitespaceDetector


BUILTIN_DETECTORS: List[Type[PatternDetector]] = [
    MissingValueDetector,
    TypeInconsistencyDetector,
    FormatVariationDetector,
    OutlierDetector,
    CategoryVariationDetector,
    EncodingIssueDetector,
    WhitespaceDetector,
]


class DetectorRegistry:
    """
    Ordered collection of detector instances.

    Example:
        >>> registry = DetectorRegistry.default()
        >>> registry.register(MyDomainDetector())
        >>> engine = RuleDiscoveryEngine(registry=registry)
    """

    def __init__(self) -> None:
        self._detectors: List[PatternDetector] = []

    @classmethod
    def default(cls) -> "DetectorRegistry":
        registry = cls()
        for detector_class in BUILTIN_DETECTORS:
            registry.register(detector_class())
        return registry

    def register(self, detector: PatternDetector) -> None:
        if not isinstance(detector, PatternDetector):
            raise TypeError(f"{detector!r} is not a PatternDetector")
        self._detectors.append(detector)

    def unregister(self, detector_class: Type[PatternDetector]) -> None:
        self._detectors = [d for d in self._detectors if not isinstance(d, detector_class)]

    def __iter__(self) -> Iterator[PatternDetector]:
        return iter(list(self._detectors))

    def __len__(self) -> int:
        return len(self._detectors)


__all__ = [
    'PatternDetector',
    'DetectorRegistry',
    'BUILTIN_DETECTORS',
    'MissingValueDetector',
    'TypeInconsistencyDetector',
    'FormatVariationDetector',
    'OutlierDetector',
    'CategoryVariationDetector',
    'EncodingIssueDetector',
    'WhitespaceDetector',
]
