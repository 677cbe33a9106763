from __future__ import annotations

from contextlib import contextmanager
import sys
import threading
from types import SimpleNamespace
from typing import Callable, Generator, Iterable, Optional
import warnings

from compoundacquire.caches import HashIndex, StructureCache
from compoundacquire.compound import AcquisitionResult, CompoundGroup, StructureSummary
from compoundacquire.services.base import ListingService
from compoundacquire import structure

DEFAULT_ACQUISITION_OPTIONS = {
    "similarity_batch_size": 1000,
    "structure_batch_size": 100,
    "active_threshold": 0.5,
    "show_warning_if_structure_parse_failed": False,
}


class CompoundAcquire:
    """
    Base class for pulling back the compounds that correspond to a set of assays, grouped into
    structures and ranked in some way.

    The amount of data can be very large, so it is requested strategically: one assay at a
    time, with follow-up requests in bounded sub-batches, and never more than one request
    outstanding. Each concrete acquisition is a small state machine; `step` performs at most one
    request and merges its response, and `start` keeps stepping until there is nothing left.

    Attributes:
        groups (list[CompoundGroup]): The compound groups found so far. After completion this is
        the ranked result.

        on_results (Optional[Callable[[], None]]): Called after every merged batch.

        on_finished (Optional[Callable[[], None]]): Called once, when the acquisition completes.
        It is not called if the acquisition was stopped or a request failed.

        hash_index (HashIndex): Structural hash -> compound IDs seen with it.

        structure_cache (StructureCache): Compound ID -> parsed structure summary.
    """

    def __init__(
        self,
        service: ListingService,
        assay_ids: Iterable[int],
        max_compounds: Optional[int],
        structure_parser: Optional[Callable[[Optional[str]], StructureSummary]] = None,
        acquisition_options: Optional[dict] = None,
        on_results: Optional[Callable[[], None]] = None,
        on_finished: Optional[Callable[[], None]] = None,
    ) -> None:
        """
        Initialize the acquisition.

        Args:
            service (ListingService): The compound-listing service to request batches from.

            assay_ids (Iterable[int]): The assays to process, in order.

            max_compounds (Optional[int]): Upper bound on the number of groups in the result.
            None means unbounded.

            structure_parser (Optional[Callable]): Turns a molfile into a StructureSummary.
            Defaults to the RDKit based `summarize_molfile`.

            acquisition_options (Optional[dict]): Overrides for DEFAULT_ACQUISITION_OPTIONS.

            on_results (Optional[Callable[[], None]]): Callback fired after every merged batch.

            on_finished (Optional[Callable[[], None]]): Callback fired once on completion.

        Raises:
            TypeError: If service, assay_ids or max_compounds have the wrong type.
            ValueError: If max_compounds is not positive or an option is invalid.
        """
        if not isinstance(service, ListingService):
            raise TypeError("service must be a ListingService.")

        assay_ids = list(assay_ids)
        if not all(
            isinstance(assay_id, int) and not isinstance(assay_id, bool)
            for assay_id in assay_ids
        ):
            raise TypeError("assay_ids can only contain integers.")

        if max_compounds is not None:
            if not isinstance(max_compounds, int) or isinstance(max_compounds, bool):
                raise TypeError("max_compounds must be an integer or None.")
            if max_compounds < 1:
                raise ValueError("max_compounds must be at least 1.")

        self.service = service
        self.assay_ids = assay_ids
        self.max_compounds = max_compounds
        self.groups: list[CompoundGroup] = []
        self.on_results = on_results
        self.on_finished = on_finished

        self.hash_index = HashIndex()
        self.structure_cache = StructureCache(structure_parser)

        self._options = self._merge_options(acquisition_options)
        self._message_slugs_shown = []
        self._cancelled = False
        self._finished = False
        self._lock = threading.RLock()

    @staticmethod
    def _merge_options(acquisition_options: Optional[dict]) -> SimpleNamespace:
        options = dict(DEFAULT_ACQUISITION_OPTIONS)
        if acquisition_options:
            unknown = set(acquisition_options) - set(DEFAULT_ACQUISITION_OPTIONS)
            if unknown:
                raise ValueError(f"Unknown acquisition options: {sorted(unknown)}")
            options.update(acquisition_options)

        for key in ("similarity_batch_size", "structure_batch_size"):
            if not isinstance(options[key], int) or options[key] < 1:
                raise ValueError(f"{key} must be a positive integer.")

        return SimpleNamespace(**options)

    # ------------ public interface ------------

    @property
    def compounds(self) -> list[list[int]]:
        return [group.compound_ids for group in self.groups]

    @property
    def hashes(self) -> list[int]:
        return [group.hash_ecfp6 for group in self.groups]

    @property
    def score(self) -> list[Optional[float]]:
        return [group.score for group in self.groups]

    @property
    def limit(self) -> int:
        return sys.maxsize if self.max_compounds is None else self.max_compounds

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def finished(self) -> bool:
        return self._finished

    def start(self) -> None:
        """Run the acquisition until it finishes or is stopped."""
        while self.step():
            pass

    def step(self) -> bool:
        """
        Perform the next unit of work: at most one request, plus merging its response.

        Returns:
            bool: True if there is more work to do, False once finished or stopped.
        """
        raise NotImplementedError

    def stop(self) -> None:
        """
        Cancel the acquisition. Cancellation is sticky.

        A request that is already in flight is not aborted, but its response is discarded.
        Once this returns, the accumulated groups are no longer modified.
        """
        with self._lock:
            self._cancelled = True

    def progress_fraction(self) -> float:
        return 0.0

    def progress_bars(self) -> Optional[list[float]]:
        return None

    def progress_text(self) -> str:
        return ""

    def results(self) -> AcquisitionResult:
        with self._lock:
            return AcquisitionResult(
                [list(compound_ids) for compound_ids in self.compounds],
                self.hashes,
                self.score,
                self._finished,
                self._cancelled,
            )

    # ------------ equality and caching primitives ------------

    def note_hash(self, hash_ecfp6: int, compound_id: int) -> None:
        """Record the occurrence of a compound's hash code, so that it can be easily looked up."""
        self.hash_index.note(hash_ecfp6, compound_id)

    def ensure_structure(
        self, compound_id: int, molfile: Optional[str], hash_ecfp6: int
    ) -> StructureSummary:
        failures_before = self.structure_cache.parse_failures
        summary = self.structure_cache.ensure(compound_id, molfile, hash_ecfp6)
        if (
            self.structure_cache.parse_failures > failures_before
            and self._options.show_warning_if_structure_parse_failed
            and "structure_parse_failed" not in self._message_slugs_shown
        ):
            self._message_slugs_shown.append("structure_parse_failed")
            warnings.warn(
                f"The structure of compound {compound_id} could not be parsed. "
                "Compounds with unreadable structures are treated as distinct from all others."
            )
        return summary

    def same_structure(self, compound_id1: int, compound_id2: int) -> bool:
        """Exact check: same formula and same fingerprint set, for two compounds in the structure cache."""
        return structure.same_structure(
            self.structure_cache.get(compound_id1),
            self.structure_cache.get(compound_id2),
        )

    @staticmethod
    def same_hash_and_score(
        group: CompoundGroup, hash_ecfp6: int, score: Optional[float]
    ) -> bool:
        """
        Cheap check: a compound with the same hash and the same score as a group is taken to be
        the same structure. Only meaningful when the score is itself derived from the fingerprint.
        """
        return group.hash_ecfp6 == hash_ecfp6 and group.score == score

    # ------------ state machine helpers ------------

    def _is_running(self) -> bool:
        return not self._cancelled and not self._finished

    @contextmanager
    def _accepting(self) -> Generator[bool, None, None]:
        """
        Hold the lock while a response is merged; yields False if the acquisition was stopped
        in the meantime, in which case the response must be discarded.
        """
        with self._lock:
            yield not self._cancelled

    def _notify_results(self) -> None:
        if self.on_results is not None and not self._cancelled:
            self.on_results()

    def _finish(self) -> None:
        with self._lock:
            if not self._is_running():
                return
            self._finished = True
        if self.on_finished is not None:
            self.on_finished()
