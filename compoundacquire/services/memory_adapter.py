from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from compoundacquire.compound import CompoundRecord
from compoundacquire.services.base import (
    IdentifierBatch,
    ListingService,
    MeasurementBatch,
    SimilarityBatch,
    StructureBatch,
)
from compoundacquire.structure import summarize_molfile, tanimoto

TYPE_ACTIVITY = "activity"
TYPE_PROBE = "probe"


@dataclass(frozen=True)
class Measurement:
    assay_id: int
    compound_id: int
    value: Optional[float]
    measure_type: str = TYPE_ACTIVITY


def molfile_similarity(similar_to: str, molfile: Optional[str]) -> float:
    """Tanimoto similarity of the ECFP6 fragment sets of two molfiles, 0 if either is unreadable."""
    query = summarize_molfile(similar_to)
    subject = summarize_molfile(molfile)
    if query.is_blank or subject.is_blank:
        return 0.0
    return tanimoto(query.fingerprints, subject.fingerprints)


class InMemoryListingService(ListingService):
    """
    Listing service over compounds and measurements held in memory.

    Applies the same filtering rules as the server: each listing returns the sorted unique
    compound IDs of the requested assays, compounds without a structure are skipped when a
    molecule is required, "actives" are activity measurements with a value of at least 0.5, and
    a hash whitelist removes every compound whose hash is not on it.
    """

    name = "memory"

    def __init__(
        self,
        compounds: Optional[Iterable[CompoundRecord]] = None,
        measurements: Optional[Iterable[Measurement]] = None,
        similarity_function: Optional[Callable[[str, Optional[str]], float]] = None,
        active_threshold: float = 0.5,
    ) -> None:
        self._compounds: dict[int, CompoundRecord] = {}
        self._measurements: dict[int, list[Measurement]] = {}
        self.similarity_function = (
            similarity_function if similarity_function is not None else molfile_similarity
        )
        self.active_threshold = active_threshold

        for compound in compounds or []:
            self.add_compound(compound)
        for measurement in measurements or []:
            self._measurements.setdefault(measurement.assay_id, []).append(measurement)

    def add_compound(self, compound: CompoundRecord) -> None:
        self._compounds[compound.compound_id] = compound

    def add_measurement(
        self,
        assay_id: int,
        compound_id: int,
        value: Optional[float],
        measure_type: str = TYPE_ACTIVITY,
    ) -> None:
        if measure_type not in (TYPE_ACTIVITY, TYPE_PROBE):
            raise ValueError(f"Unknown measurement type: {measure_type}")
        self._measurements.setdefault(assay_id, []).append(
            Measurement(assay_id, compound_id, value, measure_type)
        )

    def _has_molecule(self, compound_id: int) -> bool:
        compound = self._compounds.get(compound_id)
        return compound is not None and bool(compound.molfile)

    def _hash_of(self, compound_id: int) -> int:
        compound = self._compounds.get(compound_id)
        return compound.hash_ecfp6 if compound is not None else 0

    def _identifier_batch(
        self, compound_ids: Iterable[int], hash_whitelist: Optional[Iterable[int]]
    ) -> IdentifierBatch:
        whitelist = set(hash_whitelist) if hash_whitelist is not None else None
        batch = IdentifierBatch()
        for compound_id in sorted(set(compound_ids)):
            hash_ecfp6 = self._hash_of(compound_id)
            if whitelist is not None and hash_ecfp6 not in whitelist:
                continue
            batch.compound_ids.append(compound_id)
            batch.hashes.append(hash_ecfp6)
        return batch

    def list_identifiers(
        self,
        assay_ids: Iterable[int],
        probes_only: bool = False,
        require_molecule: bool = True,
    ) -> IdentifierBatch:
        measure_type = TYPE_PROBE if probes_only else TYPE_ACTIVITY
        found = []
        for assay_id in assay_ids:
            for measurement in self._measurements.get(assay_id, []):
                if measurement.measure_type != measure_type:
                    continue
                if require_molecule and not self._has_molecule(measurement.compound_id):
                    continue
                found.append(measurement.compound_id)
        return self._identifier_batch(found, None)

    def _is_active(self, value: Optional[float]) -> bool:
        return value is not None and value >= self.active_threshold

    def list_actives(
        self,
        assay_ids: Iterable[int],
        hash_whitelist: Optional[Iterable[int]] = None,
    ) -> IdentifierBatch:
        found = []
        for assay_id in assay_ids:
            for measurement in self._measurements.get(assay_id, []):
                if measurement.measure_type != TYPE_ACTIVITY:
                    continue
                if not self._is_active(measurement.value):
                    continue
                if not self._has_molecule(measurement.compound_id):
                    continue
                found.append(measurement.compound_id)
        return self._identifier_batch(found, hash_whitelist)

    def list_measurements(
        self,
        assay_ids: Iterable[int],
        hash_whitelist: Optional[Iterable[int]] = None,
    ) -> MeasurementBatch:
        selected = []
        for assay_id in assay_ids:
            for measurement in self._measurements.get(assay_id, []):
                if measurement.measure_type != TYPE_ACTIVITY:
                    continue
                if not self._has_molecule(measurement.compound_id):
                    continue
                selected.append(measurement)

        identifiers = self._identifier_batch(
            [measurement.compound_id for measurement in selected], hash_whitelist
        )
        allowed = set(identifiers.compound_ids)
        kept = [measurement for measurement in selected if measurement.compound_id in allowed]
        return MeasurementBatch(
            identifiers.compound_ids,
            identifiers.hashes,
            [measurement.compound_id for measurement in kept],
            [measurement.value for measurement in kept],
        )

    def similarity(
        self, compound_ids: Iterable[int], similar_to: str
    ) -> SimilarityBatch:
        batch = SimilarityBatch()
        for compound_id in compound_ids:
            compound = self._compounds.get(compound_id)
            batch.compound_ids.append(compound_id)
            batch.hashes.append(self._hash_of(compound_id))
            batch.similarity.append(
                self.similarity_function(similar_to, compound.molfile)
                if compound is not None
                else 0.0
            )
        return batch

    def fetch_structures(self, compound_ids: Iterable[int]) -> StructureBatch:
        batch = StructureBatch()
        for compound_id in compound_ids:
            compound = self._compounds.get(compound_id)
            batch.compound_ids.append(compound_id)
            batch.molfiles.append(compound.molfile if compound is not None else None)
            batch.hashes.append(self._hash_of(compound_id))
        return batch
