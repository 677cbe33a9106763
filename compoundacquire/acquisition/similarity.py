from __future__ import annotations

from bisect import bisect_right
from enum import Enum
from typing import Iterable, Optional

from compoundacquire.acquisition.base import CompoundAcquire
from compoundacquire.compound import CompoundGroup
from compoundacquire.services.base import IdentifierBatch, ListingService, SimilarityBatch


class _Phase(Enum):
    IDENTIFIERS = "identifiers"
    SIMILARITY = "similarity"


class SimilarityAcquire(CompoundAcquire):
    """
    Acquisition by similarity: start with a reference structure and keep the N most similar
    compounds, going through the assays one by one.

    NOTE: two compounds are presumed to be the same if they have the same hash code and the same
    similarity to the reference. This is not strictly true all the time, but the similarity is
    itself derived from the fingerprints, so it is a reasonable shortcut.

    Without a reference structure, compounds are simply stacked up (grouped by hash) until there
    are N of them. The stacking stops as soon as the limit is reached, so a compound arriving
    later that would have joined an existing group is not picked up.
    """

    def __init__(
        self,
        service: ListingService,
        assay_ids: Iterable[int],
        max_compounds: int,
        similar_to: Optional[str] = None,
        probes_only: bool = False,
        **kwargs,
    ) -> None:
        if max_compounds is None:
            raise ValueError("SimilarityAcquire requires a bounded max_compounds.")
        super().__init__(service, assay_ids, max_compounds, **kwargs)

        self.similar_to = similar_to or None
        self.probes_only = probes_only

        self._phase = _Phase.IDENTIFIERS
        self._assay_cursor = 0
        self._seen_compounds: set[int] = set()  # compound IDs are never evaluated twice
        self._group_by_hash: dict[int, CompoundGroup] = {}
        self._bucket: list[int] = []
        self._bucket_pos = 0
        self._bucket_size = 0

    def step(self) -> bool:
        if not self._is_running():
            return False
        if self._phase is _Phase.SIMILARITY:
            return self._score_next_bucket()
        return self._search_next_compounds()

    def progress_fraction(self) -> float:
        position = self._assay_cursor
        if self._bucket_size > 0:
            position += self._bucket_pos / self._bucket_size
        return position / max(len(self.assay_ids), 1)

    def progress_bars(self) -> Optional[list[float]]:
        # the ranked similarity scores are already the desired form
        if self.similar_to is None:
            return None
        return self.score

    def progress_text(self) -> str:
        if self.similar_to is None:
            count = len(self.groups)
        else:
            count = sum(1 for group in self.groups if group.score and group.score > 0)
        return f"{count} compound{'' if count == 1 else 's'}"

    # ------------ private methods ------------

    def _search_next_compounds(self) -> bool:
        if self._assay_cursor >= len(self.assay_ids):
            self._finish()
            return False

        assay_id = self.assay_ids[self._assay_cursor]
        batch = self.service.list_identifiers(
            [assay_id], probes_only=self.probes_only, require_molecule=True
        )

        with self._accepting() as accepted:
            if not accepted:
                return False

            if self.similar_to is None:
                limit_reached = self._stack_compounds(batch)
                if not limit_reached:
                    self._assay_cursor += 1
            else:
                limit_reached = False
                self._fill_bucket(batch)

        if limit_reached:
            self._finish()
            return False

        if self.similar_to is None:
            self._notify_results()
        return True

    def _stack_compounds(self, batch: IdentifierBatch) -> bool:
        """Group unseen compounds by hash; returns True once the limit is reached."""
        for compound_id, hash_ecfp6 in zip(batch.compound_ids, batch.hashes, strict=True):
            if compound_id in self._seen_compounds:
                continue
            self._seen_compounds.add(compound_id)

            group = self._group_by_hash.get(hash_ecfp6)
            if group is None:
                group = CompoundGroup([compound_id], hash_ecfp6)
                self._group_by_hash[hash_ecfp6] = group
                self.groups.append(group)
            else:
                group.compound_ids.append(compound_id)

            if len(self.groups) >= self.limit:
                return True
        return False

    def _fill_bucket(self, batch: IdentifierBatch) -> None:
        self._bucket = []
        for compound_id in batch.compound_ids:
            if compound_id in self._seen_compounds:
                continue
            self._seen_compounds.add(compound_id)
            self._bucket.append(compound_id)

        self._bucket_pos = 0
        self._bucket_size = len(self._bucket)
        if self._bucket:
            self._phase = _Phase.SIMILARITY
        else:
            self._next_assay()

    def _next_assay(self) -> None:
        self._phase = _Phase.IDENTIFIERS
        self._assay_cursor += 1
        self._bucket_pos = 0
        self._bucket_size = 0

    def _score_next_bucket(self) -> bool:
        subset = self._bucket[: self._options.similarity_batch_size]
        batch = self.service.similarity(subset, self.similar_to)

        with self._accepting() as accepted:
            if not accepted:
                return False

            del self._bucket[: len(subset)]
            self._bucket_pos += len(subset)
            self._merge_similarities(batch)
            if not self._bucket:
                self._next_assay()

        self._notify_results()
        return True

    def _merge_similarities(self, batch: SimilarityBatch) -> None:
        """Bounded insertion of scored compounds into the ranked group list."""
        limit = self.limit
        for compound_id, hash_ecfp6, similarity in zip(
            batch.compound_ids, batch.hashes, batch.similarity, strict=True
        ):
            if len(self.groups) >= limit and similarity <= self.groups[-1].score:
                continue

            match = next(
                (
                    group
                    for group in self.groups
                    if self.same_hash_and_score(group, hash_ecfp6, similarity)
                ),
                None,
            )
            if match is not None:
                match.compound_ids.append(compound_id)
                continue

            position = bisect_right(self.groups, -similarity, key=lambda group: -group.score)
            self.groups.insert(position, CompoundGroup([compound_id], hash_ecfp6, similarity))
            del self.groups[limit:]
