from __future__ import annotations

from compoundacquire import (
    FrequentAcquire,
    SimilarityAcquire,
    run_acquisition,
    run_acquisitions_parallelized,
)


def _service(make_service):
    return make_service(
        {100: (1, "A|1"), 200: (2, "B|2"), 300: (3, "C|3")},
        {1: {100: 1.0, 200: 1.0}, 2: {200: 1.0}, 3: {300: 1.0}},
        similarity_function=lambda similar_to, molfile: 0.5,
    )


def test_run_acquisition_returns_results(make_service, fake_parser):
    acquisition = FrequentAcquire(
        _service(make_service), [1, 2, 3], 2, structure_parser=fake_parser
    )

    result = run_acquisition(acquisition)

    assert result.finished
    assert not result.cancelled
    assert result.compounds == [[200], [100]]
    assert result.scores == [2.0, 1.0]


def test_run_acquisition_keeps_the_callers_callback(make_service, fake_parser):
    calls = []

    def _on_results():
        calls.append(True)

    acquisition = FrequentAcquire(
        _service(make_service),
        [1, 2, 3],
        None,
        structure_parser=fake_parser,
        on_results=_on_results,
    )

    run_acquisition(acquisition, progressbar=True)

    assert len(calls) == 3
    assert acquisition.on_results is _on_results


def test_run_acquisition_reports_a_stopped_run(make_service, fake_parser):
    acquisition = FrequentAcquire(
        _service(make_service), [1, 2, 3], None, structure_parser=fake_parser
    )
    acquisition.on_results = acquisition.stop

    result = run_acquisition(acquisition)

    assert result.cancelled
    assert not result.finished
    assert result.compounds == [[100], [200]]


def test_run_acquisitions_parallelized_keeps_order(make_service, fake_parser):
    service = _service(make_service)
    acquisitions = [
        FrequentAcquire(service, [1, 2, 3], None, structure_parser=fake_parser),
        SimilarityAcquire(service, [3], 5, similar_to="reference"),
        FrequentAcquire(service, [3], None, structure_parser=fake_parser),
    ]

    results = run_acquisitions_parallelized(acquisitions, max_workers=2, progressbar=False)

    assert [result.compounds for result in results] == [
        [[200], [100], [300]],
        [[300]],
        [[300]],
    ]
    assert all(result.finished for result in results)
