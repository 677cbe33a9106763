from .base import (
    IdentifierBatch,
    ListingService,
    MeasurementBatch,
    SimilarityBatch,
    StructureBatch,
)
from .memory_adapter import InMemoryListingService, Measurement
from .rest_adapter import RESTListingService

__all__ = [
    "IdentifierBatch",
    "InMemoryListingService",
    "ListingService",
    "Measurement",
    "MeasurementBatch",
    "RESTListingService",
    "SimilarityBatch",
    "StructureBatch",
]
