from __future__ import annotations

from functools import reduce
from operator import xor
from typing import Iterable, Optional

from compoundacquire.compound import StructureSummary
from compoundacquire.rdkitmods import (
    ecfp6_fragment_hashes,
    molecular_formula,
    read_molblock,
)


def summarize_molfile(molfile: Optional[str]) -> StructureSummary:
    """
    Parse a molfile into the formula and fingerprint summary used for duplicate detection.

    Args:
        molfile (Optional[str]): MDL Molfile text, may be None or empty.

    Returns:
        StructureSummary: The summary; blank if the structure could not be read.

    Notes:
        - Failures are never raised: a structure that cannot be parsed gets a blank summary,
          which `same_structure` treats as distinct from everything.
        - If the fingerprint calculation fails the formula is kept and the fingerprint is empty.
    """
    mol = read_molblock(molfile)
    if mol is None:
        return StructureSummary()

    formula = molecular_formula(mol)
    try:
        fingerprints = ecfp6_fragment_hashes(mol)
    except RuntimeError:
        fingerprints = ()
    return StructureSummary(formula, fingerprints)


def same_structure(summary1: StructureSummary, summary2: StructureSummary) -> bool:
    """
    Judge whether two summaries represent the same structure.

    Two compounds are considered the same when they have an identical molecular formula
    and an identical set of ECFP6 fragment hashes. The structural hash is assumed to have
    been compared already.

    NOTE: this is not strictly correct. Different structures with the same formula and the same
    fragment set are exceedingly rare but possible; the rigorous answer needs an isomorphism
    test, which is not attempted here.

    Args:
        summary1 (StructureSummary): The first summary.

        summary2 (StructureSummary): The second summary.

    Returns:
        bool: True if the summaries are treated as the same structure.
    """
    if summary1 is None or summary2 is None:
        return False
    if summary1.is_blank or summary2.is_blank:
        return False
    if summary1.formula != summary2.formula:
        return False
    return summary1.fingerprints == summary2.fingerprints


def hash_ecfp6(fingerprints: Iterable[int]) -> int:
    """Coarse structural hash: the XOR of all fragment hashes (0 for no fragments)."""
    return reduce(xor, fingerprints, 0)


def tanimoto(fingerprints1: Iterable[int], fingerprints2: Iterable[int]) -> float:
    set1 = set(fingerprints1)
    set2 = set(fingerprints2)
    union = len(set1 | set2)
    if union == 0:
        return 0.0
    return len(set1 & set2) / union
