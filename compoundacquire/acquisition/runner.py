from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from tqdm import tqdm

from compoundacquire.acquisition.base import CompoundAcquire
from compoundacquire.compound import AcquisitionResult


def run_acquisition(
    acquisition: CompoundAcquire, progressbar: Optional[bool] = False
) -> AcquisitionResult:
    """
    Drives an acquisition to completion on the calling thread.

    Args:
        acquisition (CompoundAcquire): The acquisition to run. Its own on_results callback keeps
        firing; it is only wrapped for the duration of the run.

        progressbar (Optional[bool]): If True, mirror the progress on a tqdm bar, with the
        acquisition's progress text as postfix. Defaults to False.

    Returns:
        AcquisitionResult: The results, also when the acquisition was stopped part way.
    """
    callers_on_results = acquisition.on_results

    with tqdm(total=100, disable=not progressbar, unit="%") as bar:

        def _on_results():
            bar.n = round(100 * acquisition.progress_fraction())
            bar.set_postfix_str(acquisition.progress_text(), refresh=False)
            bar.refresh()
            if callers_on_results is not None:
                callers_on_results()

        acquisition.on_results = _on_results
        try:
            acquisition.start()
        finally:
            acquisition.on_results = callers_on_results

        if acquisition.finished:
            bar.n = 100
            bar.set_postfix_str(acquisition.progress_text())

    return acquisition.results()


def run_acquisitions_parallelized(
    acquisitions: list[CompoundAcquire],
    max_workers: Optional[int] = 5,
    progressbar: Optional[bool] = True,
) -> list[AcquisitionResult]:
    """
    Runs independent acquisitions in parallel.

    Nothing is shared between the acquisitions, so each one runs on its own worker thread. If
    one of them raises, the exception is propagated once the executor has shut down.

    Args:
        acquisitions (list[CompoundAcquire]): The acquisitions to run.

        max_workers (Optional[int]): Size of the thread pool. Defaults to 5.

        progressbar (Optional[bool]): If True, show a tqdm bar counting completed acquisitions.
        Defaults to True.

    Returns:
        list[AcquisitionResult]: The results, in the same order as the acquisitions.
    """
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        results = list(
            tqdm(
                executor.map(run_acquisition, acquisitions),
                total=len(acquisitions),
                disable=not progressbar,
            )
        )

    return results
