from __future__ import annotations

from typing import Callable, Iterator, Optional

from compoundacquire.compound import StructureSummary
from compoundacquire.structure import summarize_molfile


class HashIndex:
    """
    Maps a structural hash to the compound IDs that have been seen with it.

    Two different structures can share a hash, but the same structure always has the same hash,
    so exact comparison is only ever needed within one bucket. Buckets keep insertion order.
    """

    def __init__(self):
        self._buckets: dict[int, dict[int, None]] = {}

    def note(self, hash_ecfp6: int, compound_id: int) -> None:
        bucket = self._buckets.get(hash_ecfp6)
        if bucket is None:
            bucket = {}
            self._buckets[hash_ecfp6] = bucket
        bucket[compound_id] = None

    def members(self, hash_ecfp6: int) -> list[int]:
        return list(self._buckets.get(hash_ecfp6, ()))

    def __contains__(self, hash_ecfp6: int) -> bool:
        return hash_ecfp6 in self._buckets

    def __iter__(self) -> Iterator[int]:
        return iter(self._buckets)

    def __len__(self) -> int:
        return len(self._buckets)


class StructureCache:
    """
    Lazily filled compound ID -> StructureSummary store.

    Entries are only ever added, never evicted, for the lifetime of the acquisition that owns it.

    Attributes:
        parser (Callable[[Optional[str]], StructureSummary]): Turns a molfile into a summary.

        parse_failures (int): Number of molfiles that produced a blank summary.
    """

    def __init__(
        self,
        parser: Optional[Callable[[Optional[str]], StructureSummary]] = None,
    ):
        self.parser = parser if parser is not None else summarize_molfile
        self.parse_failures = 0
        self._summaries: dict[int, StructureSummary] = {}
        self._hashes: dict[int, int] = {}

    def ensure(
        self, compound_id: int, molfile: Optional[str], hash_ecfp6: int
    ) -> StructureSummary:
        """
        Parse and store the summary for a compound, unless it is already cached.

        Args:
            compound_id (int): The compound to summarise.

            molfile (Optional[str]): Its molfile.

            hash_ecfp6 (int): Its structural hash as reported by the service.

        Returns:
            StructureSummary: The cached summary for the compound.
        """
        summary = self._summaries.get(compound_id)
        if summary is not None:
            return summary

        summary = self.parser(molfile)
        if summary is None:
            summary = StructureSummary()
        if summary.is_blank:
            self.parse_failures += 1
        self._summaries[compound_id] = summary
        self._hashes[compound_id] = hash_ecfp6
        return summary

    def get(self, compound_id: int) -> Optional[StructureSummary]:
        return self._summaries.get(compound_id)

    def hash_of(self, compound_id: int) -> Optional[int]:
        return self._hashes.get(compound_id)

    def __contains__(self, compound_id: int) -> bool:
        return compound_id in self._summaries

    def __len__(self) -> int:
        return len(self._summaries)
