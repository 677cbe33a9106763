from __future__ import annotations

from typing import Optional

import pytest

from compoundacquire.compound import CompoundRecord, StructureSummary
from compoundacquire.services import InMemoryListingService


def parse_fake_molfile(molfile: Optional[str]) -> StructureSummary:
    """Stand-in for the RDKit parser: "C6H6|1,2" -> formula C6H6 with fragments (1, 2)."""
    if not molfile or "|" not in molfile:
        return StructureSummary()
    formula, _, fragments = molfile.partition("|")
    fingerprints = tuple(sorted({int(value) for value in fragments.split(",") if value}))
    return StructureSummary(formula, fingerprints)


@pytest.fixture
def fake_parser():
    return parse_fake_molfile


@pytest.fixture
def make_service():
    """
    Factory for an in-memory service.

    compounds: {compound_id: (hash, molfile)}
    activities: {assay_id: {compound_id: value}}
    """

    def _make(compounds, activities=None, probes=None, similarity_function=None):
        service = InMemoryListingService(similarity_function=similarity_function)
        for compound_id, (hash_ecfp6, molfile) in compounds.items():
            service.add_compound(CompoundRecord(compound_id, hash_ecfp6, molfile))
        for assay_id, values in (activities or {}).items():
            for compound_id, value in values.items():
                service.add_measurement(assay_id, compound_id, value)
        for assay_id, compound_ids in (probes or {}).items():
            for compound_id in compound_ids:
                service.add_measurement(assay_id, compound_id, None, "probe")
        return service

    return _make
