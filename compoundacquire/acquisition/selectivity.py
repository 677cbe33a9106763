from __future__ import annotations

from typing import Iterable, Optional

from compoundacquire.acquisition.base import CompoundAcquire
from compoundacquire.acquisition.frequent import FrequentAcquire
from compoundacquire.compound import CompoundGroup
from compoundacquire.services.base import ListingService


class SelectivityAcquire(CompoundAcquire):
    """
    Acquisition by selectivity, done in two passes:

    1. every structure that is active in at least one of the assays is collected, with no upper
       limit, by a FrequentAcquire in actives mode
    2. the same assays are scanned again in probe mode, restricted to the structures from the
       first pass, and the structures with the best inactive/active ratio are kept

    The second pass starts from the first pass's groups and shares its caches, so nothing is
    fetched or parsed twice.
    """

    def __init__(
        self,
        service: ListingService,
        assay_ids: Iterable[int],
        max_compounds: Optional[int],
        **kwargs,
    ) -> None:
        super().__init__(service, assay_ids, max_compounds, **kwargs)

        parser = self.structure_cache.parser
        options = vars(self._options)

        self.pass1 = FrequentAcquire(
            service,
            self.assay_ids,
            None,
            as_probes=False,
            structure_parser=parser,
            acquisition_options=options,
            on_results=self._notify_results,
            on_finished=self._finished_first,
        )
        self.pass1.structure_cache = self.structure_cache
        self.pass1.hash_index = self.hash_index

        self.pass2 = FrequentAcquire(
            service,
            self.assay_ids,
            max_compounds,
            as_probes=True,
            existing_compounds=True,
            structure_parser=parser,
            acquisition_options=options,
            on_results=self._notify_results,
            on_finished=self._finished_second,
        )

        self.phase = 1

    @property
    def current_pass(self) -> FrequentAcquire:
        return self.pass1 if self.phase == 1 else self.pass2

    def step(self) -> bool:
        if not self._is_running():
            return False
        if self.current_pass.step():
            return True
        # the pass that just finished may have moved on to the next one, or finished everything
        return self._is_running()

    def stop(self) -> None:
        super().stop()
        self.pass1.stop()
        self.pass2.stop()

    def progress_fraction(self) -> float:
        if self._finished:
            return 1.0
        if self.phase == 1:
            return 0.5 * self.pass1.progress_fraction()
        return 0.5 + 0.5 * self.pass2.progress_fraction()

    def progress_bars(self) -> Optional[list[float]]:
        return self.current_pass.progress_bars()

    def progress_text(self) -> str:
        return self.current_pass.progress_text()

    # ------------ private methods ------------

    def _finished_first(self) -> None:
        with self._accepting() as accepted:
            if not accepted:
                return

            self.phase = 2
            if not self.pass1.groups:
                skip_second = True
            else:
                skip_second = False
                self.pass2.hash_whitelist = sorted(set(self.pass1.hashes))
                self.pass2.existing_compounds = True
                self.pass2.seed_from(self.pass1)

        if skip_second:
            self._finish()

    def _finished_second(self) -> None:
        with self._accepting() as accepted:
            if not accepted:
                return
            self.groups = [
                CompoundGroup(
                    list(group.compound_ids),
                    group.hash_ecfp6,
                    group.score,
                    group.actives,
                    group.inactives,
                )
                for group in self.pass2.groups
            ]

        self._finish()
