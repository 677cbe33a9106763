from dataclasses import dataclass, field
from typing import Optional, List, Tuple, Dict, Any
import copy


@dataclass(frozen=True)
class CompoundRecord:
    """
    One registered compound as returned by a compound-listing service.

    Attributes:
        compound_id (int): Opaque identifier of this registration in the external store.

        hash_ecfp6 (int): Coarse structural hash (XOR of the ECFP6 fragment hashes).

        molfile (Optional[str]): MDL Molfile of the structure, if known.

        is_probe (Optional[bool]): Whether the compound was registered as a probe.
    """

    compound_id: int
    hash_ecfp6: int
    molfile: Optional[str] = None
    is_probe: Optional[bool] = False

    @classmethod
    def from_molfile(
        cls, compound_id: int, molfile: str, is_probe: Optional[bool] = False
    ) -> "CompoundRecord":
        """
        Create a record whose structural hash is derived from its molfile.

        Args:
            compound_id (int): Identifier of the registration.

            molfile (str): MDL Molfile of the structure.

            is_probe (Optional[bool]): Whether the compound is a probe. Defaults to False.

        Returns:
            CompoundRecord: The record, with a hash of 0 if the molfile cannot be parsed.
        """
        from compoundacquire.structure import hash_ecfp6, summarize_molfile

        summary = summarize_molfile(molfile)
        return cls(compound_id, hash_ecfp6(summary.fingerprints), molfile, is_probe)


@dataclass(frozen=True)
class StructureSummary:
    """
    Parsed form of a compound: just enough to decide whether two registrations are the same structure.

    Attributes:
        formula (str): Canonical molecular formula, empty if the structure could not be parsed.

        fingerprints (Tuple[int, ...]): Sorted unique ECFP6 fragment hashes.
    """

    formula: str = ""
    fingerprints: Tuple[int, ...] = ()

    @property
    def is_blank(self) -> bool:
        return not self.formula and not self.fingerprints


@dataclass
class CompoundGroup:
    """
    A set of compound IDs that are believed to denote the same structure.

    Attributes:
        compound_ids (List[int]): Member compound IDs, in the order they joined.

        hash_ecfp6 (int): Structural hash shared by all members.

        score (Optional[float]): Ranking score; its meaning depends on the acquisition strategy.

        actives (int): Number of times a member was observed as active.

        inactives (int): Number of times a member was observed as inactive.
    """

    compound_ids: List[int]
    hash_ecfp6: int
    score: Optional[float] = None
    actives: int = 0
    inactives: int = 0

    def count(self, is_active: bool) -> None:
        if is_active:
            self.actives += 1
        else:
            self.inactives += 1

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self.__dict__)


@dataclass
class AcquisitionResult:
    """
    Snapshot of the ranked output of an acquisition.

    Attributes:
        compounds (List[List[int]]): Member compound IDs for each group, in rank order.

        hashes (List[int]): Structural hash for each group.

        scores (List[Optional[float]]): Score for each group.

        finished (bool): True if the acquisition ran to completion.

        cancelled (bool): True if the acquisition was stopped.
    """

    compounds: List[List[int]] = field(default_factory=list)
    hashes: List[int] = field(default_factory=list)
    scores: List[Optional[float]] = field(default_factory=list)
    finished: bool = False
    cancelled: bool = False

    def __len__(self) -> int:
        return len(self.compounds)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the result to a dictionary.

        Returns:
            Dict[str, Any]: A deep copy of the result's fields.
        """
        return copy.deepcopy(self.__dict__)
