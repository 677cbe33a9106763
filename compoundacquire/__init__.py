from .acquisition import (
    CompoundAcquire,
    FrequentAcquire,
    SelectivityAcquire,
    SimilarityAcquire,
    run_acquisition,
    run_acquisitions_parallelized,
)
from .compound import AcquisitionResult, CompoundGroup, CompoundRecord, StructureSummary

from importlib.metadata import version, PackageNotFoundError
try:
    __version__ = version("compoundacquire")
except PackageNotFoundError:
    __version__ = "dev"
