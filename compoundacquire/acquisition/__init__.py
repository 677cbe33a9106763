from .base import DEFAULT_ACQUISITION_OPTIONS, CompoundAcquire
from .frequent import FrequentAcquire
from .runner import run_acquisition, run_acquisitions_parallelized
from .selectivity import SelectivityAcquire
from .similarity import SimilarityAcquire

__all__ = [
    "DEFAULT_ACQUISITION_OPTIONS",
    "CompoundAcquire",
    "FrequentAcquire",
    "SelectivityAcquire",
    "SimilarityAcquire",
    "run_acquisition",
    "run_acquisitions_parallelized",
]
