from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields
from typing import Iterable, Optional


def _check_parallel_lists(batch) -> None:
    lengths = {f.name: len(getattr(batch, f.name)) for f in fields(batch) if f.metadata.get("parallel")}
    if len(set(lengths.values())) > 1:
        raise ValueError(
            f"The number of returned values should be equal for all lists: {lengths}"
        )


def _parallel():
    return field(default_factory=list, metadata={"parallel": True})


@dataclass
class IdentifierBatch:
    """Compound IDs with their structural hashes, as listed for one or more assays."""

    compound_ids: list[int] = _parallel()
    hashes: list[int] = _parallel()

    def __post_init__(self):
        _check_parallel_lists(self)

    def __len__(self) -> int:
        return len(self.compound_ids)


@dataclass
class MeasurementBatch:
    """Identifier listing plus (compound ID, value) measurement pairs."""

    compound_ids: list[int] = _parallel()
    hashes: list[int] = _parallel()
    measure_compounds: list[int] = field(default_factory=list)
    measure_values: list[Optional[float]] = field(default_factory=list)

    def __post_init__(self):
        _check_parallel_lists(self)
        if len(self.measure_compounds) != len(self.measure_values):
            raise ValueError(
                "measure_compounds and measure_values must be of the same length."
            )


@dataclass
class SimilarityBatch:
    compound_ids: list[int] = _parallel()
    hashes: list[int] = _parallel()
    similarity: list[float] = _parallel()

    def __post_init__(self):
        _check_parallel_lists(self)


@dataclass
class StructureBatch:
    compound_ids: list[int] = _parallel()
    molfiles: list[Optional[str]] = _parallel()
    hashes: list[int] = _parallel()

    def __post_init__(self):
        _check_parallel_lists(self)


class ListingService(ABC):
    """
    Contract for the remote compound-listing service consumed by the acquisition engines.

    Every call is a single request/response round trip; the engines never have more than one
    call outstanding. Implementations raise on transport failure and leave recovery to the caller.
    """

    name: str

    @abstractmethod
    def list_identifiers(
        self,
        assay_ids: Iterable[int],
        probes_only: bool = False,
        require_molecule: bool = True,
    ) -> IdentifierBatch:
        """Lightweight enumeration of the compounds measured by the assays."""
        raise NotImplementedError

    @abstractmethod
    def list_actives(
        self,
        assay_ids: Iterable[int],
        hash_whitelist: Optional[Iterable[int]] = None,
    ) -> IdentifierBatch:
        """Compounds that are active in the assays, optionally restricted to known hashes."""
        raise NotImplementedError

    @abstractmethod
    def list_measurements(
        self,
        assay_ids: Iterable[int],
        hash_whitelist: Optional[Iterable[int]] = None,
    ) -> MeasurementBatch:
        """Active/inactive measurement pairs for the compounds of the assays."""
        raise NotImplementedError

    @abstractmethod
    def similarity(
        self, compound_ids: Iterable[int], similar_to: str
    ) -> SimilarityBatch:
        """Similarity of each compound to the reference molfile, in the range 0..1."""
        raise NotImplementedError

    @abstractmethod
    def fetch_structures(self, compound_ids: Iterable[int]) -> StructureBatch:
        """Molfiles and hashes for the given compounds, in request order."""
        raise NotImplementedError
