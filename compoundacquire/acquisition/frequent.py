from __future__ import annotations

from collections import Counter
from enum import Enum
from typing import Iterable, Optional

from compoundacquire.acquisition.base import CompoundAcquire
from compoundacquire.compound import CompoundGroup
from compoundacquire.services.base import IdentifierBatch, ListingService, MeasurementBatch


class _Phase(Enum):
    SEARCH = "search"
    RESOLVE = "resolve"


class FrequentAcquire(CompoundAcquire):
    """
    Acquisition by frequency: add up the number of times each structure is active, then keep
    the most promiscuous (frequent hitters), or the ones with the highest inactive/active ratio
    (probe-likeness).

    Compounds are grouped by structure as they come in. A compound ID that has been seen before
    just has its counters bumped, and a hash code that has never been seen before is safe to turn
    into a new group. A new compound ID with a known hash code may or may not be a duplicate, so
    the structures in that hash bucket are fetched and compared exactly before deciding.

    Attributes:
        as_probes (bool): Rank by inactive/active ratio instead of by number of actives.

        hash_whitelist (Optional[list[int]]): Restrict the compounds retrieved to these hash codes.

        existing_compounds (bool): If True, the groups are predefined and no new ones are created;
        only the counters of existing groups are updated.

        group_of (dict[int, CompoundGroup]): Compound ID -> the group it belongs to.
    """

    def __init__(
        self,
        service: ListingService,
        assay_ids: Iterable[int],
        max_compounds: Optional[int],
        as_probes: bool = False,
        hash_whitelist: Optional[Iterable[int]] = None,
        existing_compounds: bool = False,
        **kwargs,
    ) -> None:
        super().__init__(service, assay_ids, max_compounds, **kwargs)
        self.as_probes = as_probes
        self.hash_whitelist = sorted(set(hash_whitelist)) if hash_whitelist is not None else None
        self.existing_compounds = existing_compounds
        self.group_of: dict[int, CompoundGroup] = {}

        self._group_hashes: set[int] = set()
        self._phase = _Phase.SEARCH
        self._assay_cursor = 0
        self._pending: list[tuple[int, int, bool]] = []
        self._to_fetch: list[int] = []
        self._resolve_pos = 0  # just used for progress indication
        self._resolve_count = 0

    def seed_from(self, other: "FrequentAcquire") -> None:
        """
        Start from the groups and caches of a previous pass, with fresh counters.

        The structure cache and hash index are shared by reference, so nothing that was already
        fetched or parsed is done again.
        """
        self.structure_cache = other.structure_cache
        self.hash_index = other.hash_index
        self.groups = [
            CompoundGroup(list(group.compound_ids), group.hash_ecfp6, 0.0)
            for group in other.groups
        ]
        self.group_of = {
            compound_id: group for group in self.groups for compound_id in group.compound_ids
        }
        self._group_hashes = {group.hash_ecfp6 for group in self.groups}

    def step(self) -> bool:
        if not self._is_running():
            return False
        if self._phase is _Phase.RESOLVE:
            return self._fetch_next_structures()
        return self._search_next_compounds()

    def progress_fraction(self) -> float:
        position = self._assay_cursor
        if self._resolve_count > 0:
            position += self._resolve_pos / self._resolve_count
        return position / max(len(self.assay_ids), 1)

    def progress_bars(self) -> Optional[list[float]]:
        """Transform the counts so far into bars scaled to the best one, for preliminary display."""
        if not self.groups:
            return None
        self._calculate_scores()
        ranked = sorted((group.score for group in self.groups), reverse=True)[: self.limit]
        scale = 1.0 / ranked[0] if ranked[0] > 0 else 0.0
        return [score * scale for score in ranked]

    def progress_text(self) -> str:
        count = sum(1 for group in self.groups if group.actives > 0)
        return f"{count} compound{'' if count == 1 else 's'}"

    # ------------ private methods ------------

    def _search_next_compounds(self) -> bool:
        if self._assay_cursor >= len(self.assay_ids):
            self._finalise_results()
            return False

        # counting actives only needs the list of actives; counting the active/inactive ratio
        # needs the measurements, which come back in a slightly different format
        assay_id = self.assay_ids[self._assay_cursor]
        if not self.as_probes:
            batch = self.service.list_actives([assay_id], self.hash_whitelist)
        else:
            batch = self.service.list_measurements([assay_id], self.hash_whitelist)

        with self._accepting() as accepted:
            if not accepted:
                return False

            if not self.as_probes:
                pending = self._process_active_results(batch)
            else:
                pending = self._process_measure_results(batch)

            if pending:
                self._begin_resolution(pending)
            else:
                self._next_assay()

        if self._phase is _Phase.SEARCH:
            self._notify_results()
        return True

    def _process_active_results(self, batch: IdentifierBatch) -> list[tuple[int, int, bool]]:
        # the results are for one assay and prefiltered for being active, so the compound IDs are unique
        pending = []
        for compound_id, hash_ecfp6 in zip(batch.compound_ids, batch.hashes, strict=True):
            self._classify(compound_id, hash_ecfp6, True, pending)
        return pending

    def _process_measure_results(self, batch: MeasurementBatch) -> list[tuple[int, int, bool]]:
        listed = set(batch.compound_ids)
        measured = set()
        active_count = Counter()
        for compound_id, value in zip(batch.measure_compounds, batch.measure_values, strict=True):
            if compound_id not in listed:
                continue
            measured.add(compound_id)
            if value is not None and value >= self._options.active_threshold:
                active_count[compound_id] += 1

        # a compound counts once per assay: active if any of its measurements is active
        pending = []
        for compound_id, hash_ecfp6 in zip(batch.compound_ids, batch.hashes, strict=True):
            if compound_id not in measured:
                continue
            self._classify(compound_id, hash_ecfp6, active_count[compound_id] > 0, pending)
        return pending

    def _classify(
        self,
        compound_id: int,
        hash_ecfp6: int,
        is_active: bool,
        pending: list[tuple[int, int, bool]],
    ) -> None:
        self.note_hash(hash_ecfp6, compound_id)

        group = self.group_of.get(compound_id)
        if group is not None:
            group.count(is_active)
        elif hash_ecfp6 not in self._group_hashes:
            if not self.existing_compounds:
                self._add_group(compound_id, hash_ecfp6, is_active)
        else:
            pending.append((compound_id, hash_ecfp6, is_active))

    def _add_group(self, compound_id: int, hash_ecfp6: int, is_active: bool) -> None:
        group = CompoundGroup([compound_id], hash_ecfp6)
        group.count(is_active)
        self.groups.append(group)
        self.group_of[compound_id] = group
        self._group_hashes.add(hash_ecfp6)

    def _begin_resolution(self, pending: list[tuple[int, int, bool]]) -> None:
        # everything sharing a hash with a candidate needs a structure, including compounds that
        # are already grouped, so there is something to compare against
        to_fetch = {}
        for _, hash_ecfp6, _ in pending:
            for compound_id in self.hash_index.members(hash_ecfp6):
                if compound_id not in self.structure_cache:
                    to_fetch[compound_id] = None

        self._pending = pending
        self._to_fetch = list(to_fetch)
        self._resolve_pos = 0
        self._resolve_count = len(self._to_fetch)

        if self._to_fetch:
            self._phase = _Phase.RESOLVE
        else:
            self._resolve_duplicates()
            self._next_assay()

    def _fetch_next_structures(self) -> bool:
        subset = self._to_fetch[: self._options.structure_batch_size]
        batch = self.service.fetch_structures(subset)

        with self._accepting() as accepted:
            if not accepted:
                return False

            for compound_id, molfile, hash_ecfp6 in zip(
                batch.compound_ids, batch.molfiles, batch.hashes, strict=True
            ):
                self.ensure_structure(compound_id, molfile, hash_ecfp6)
            del self._to_fetch[: len(subset)]
            self._resolve_pos += len(subset)

            if not self._to_fetch:
                self._resolve_duplicates()
                self._next_assay()

        if self._phase is _Phase.SEARCH:
            self._notify_results()
        return True

    def _resolve_duplicates(self) -> None:
        for compound_id, hash_ecfp6, is_active in self._pending:
            group = self.group_of.get(compound_id)
            if group is None:
                group = self._find_equivalent_group(compound_id, hash_ecfp6)
                if group is not None:
                    group.compound_ids.append(compound_id)
                    self.group_of[compound_id] = group
                elif not self.existing_compounds:
                    self._add_group(compound_id, hash_ecfp6, is_active)
                    continue
                else:
                    continue
            group.count(is_active)
        self._pending = []

    def _find_equivalent_group(self, compound_id: int, hash_ecfp6: int) -> Optional[CompoundGroup]:
        """First group sharing the hash that has a member with the same structure, if any."""
        for look_id in self.hash_index.members(hash_ecfp6):
            if look_id == compound_id or look_id not in self.group_of:
                continue
            if self.same_structure(compound_id, look_id):
                return self.group_of[look_id]
        return None

    def _next_assay(self) -> None:
        self._phase = _Phase.SEARCH
        self._assay_cursor += 1
        self._resolve_pos = 0
        self._resolve_count = 0

    def _calculate_scores(self) -> None:
        for group in self.groups:
            if self.as_probes:
                group.score = group.inactives / group.actives if group.actives > 0 else 0.0
            else:
                group.score = float(group.actives)

    def _finalise_results(self) -> None:
        """Select and rank the best groups, now that everything has been merged."""
        with self._accepting() as accepted:
            if not accepted:
                return

            self._calculate_scores()
            ranked = sorted(self.groups, key=lambda group: group.score, reverse=True)[: self.limit]
            while ranked and ranked[-1].score == 0:  # zero score = don't want it
                ranked.pop()
            self.groups = ranked

        self._finish()
