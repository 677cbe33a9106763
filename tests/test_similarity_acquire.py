from __future__ import annotations

import pytest

from compoundacquire import SimilarityAcquire

REFERENCE = "reference molfile"


def _similarity_from_molfile(similar_to, molfile):
    # test molfiles are just "sim=<value>"
    return float(molfile.split("=")[1])


def _service(make_service, compounds, activities, **kwargs):
    return make_service(
        compounds, activities, similarity_function=_similarity_from_molfile, **kwargs
    )


def test_keeps_the_most_similar_compounds(make_service):
    service = _service(
        make_service,
        {
            1: (11, "sim=0.2"),
            2: (12, "sim=0.9"),
            3: (13, "sim=0.5"),
            4: (14, "sim=0.7"),
            5: (15, "sim=0.1"),
        },
        {1: {1: 1.0, 2: 1.0, 3: 0.0}, 2: {4: 1.0, 5: 1.0}},
    )

    acquisition = SimilarityAcquire(service, [1, 2], 3, similar_to=REFERENCE)
    acquisition.start()

    assert acquisition.finished
    assert acquisition.compounds == [[2], [4], [3]]
    assert acquisition.score == [0.9, 0.7, 0.5]
    assert acquisition.hashes == [12, 14, 13]


def test_ranking_stays_sorted_after_every_batch(make_service):
    compounds = {i: (100 + i, f"sim={(i * 37 % 100) / 100}") for i in range(1, 41)}
    activities = {assay_id: {i: 1.0 for i in range(assay_id, 41, 4)} for assay_id in range(1, 5)}
    service = _service(make_service, compounds, activities)
    snapshots = []

    acquisition = SimilarityAcquire(service, [1, 2, 3, 4], 5, similar_to=REFERENCE)
    acquisition.on_results = lambda: snapshots.append(list(acquisition.score))
    acquisition.start()

    assert snapshots
    for scores in snapshots:
        assert len(scores) <= 5
        assert scores == sorted(scores, reverse=True)

    expected = sorted((similarity for similarity in (
        float(molfile.split("=")[1]) for _, molfile in compounds.values()
    )), reverse=True)[:5]
    assert acquisition.score == expected


def test_same_hash_and_similarity_are_grouped(make_service):
    service = _service(
        make_service,
        {1: (77, "sim=0.8"), 2: (77, "sim=0.8"), 3: (77, "sim=0.6"), 4: (78, "sim=0.8")},
        {1: {1: 1.0, 2: 1.0, 3: 1.0}, 2: {4: 1.0}},
    )

    acquisition = SimilarityAcquire(service, [1, 2], 10, similar_to=REFERENCE)
    acquisition.start()

    assert acquisition.compounds == [[1, 2], [4], [3]]
    assert acquisition.score == [0.8, 0.8, 0.6]


def test_worse_compounds_are_rejected_once_full(make_service):
    service = _service(
        make_service,
        {1: (11, "sim=0.9"), 2: (12, "sim=0.8"), 3: (13, "sim=0.8"), 4: (14, "sim=0.3")},
        {1: {1: 1.0, 2: 1.0}, 2: {3: 1.0, 4: 1.0}},
    )

    acquisition = SimilarityAcquire(service, [1, 2], 2, similar_to=REFERENCE)
    acquisition.start()

    # 3 ties with the last kept score, which is not good enough to displace it
    assert acquisition.compounds == [[1], [2]]


def test_similarity_requests_are_chunked(make_service, mocker):
    compounds = {i: (i, "sim=0.5") for i in range(1, 2501)}
    service = _service(make_service, compounds, {1: {i: 1.0 for i in compounds}})
    similarity_spy = mocker.spy(service, "similarity")

    acquisition = SimilarityAcquire(service, [1], 10, similar_to=REFERENCE)
    acquisition.start()

    sizes = [len(call.args[0]) for call in similarity_spy.call_args_list]
    assert sizes == [1000, 1000, 500]
    assert all(call.args[1] == REFERENCE for call in similarity_spy.call_args_list)
    assert len(acquisition.groups) == 10


def test_compounds_are_evaluated_only_once(make_service, mocker):
    service = _service(
        make_service,
        {1: (11, "sim=0.5"), 2: (12, "sim=0.4")},
        {1: {1: 1.0}, 2: {1: 1.0, 2: 1.0}, 3: {1: 1.0}},
    )
    similarity_spy = mocker.spy(service, "similarity")

    acquisition = SimilarityAcquire(service, [1, 2, 3], 5, similar_to=REFERENCE)
    acquisition.start()

    assert [call.args[0] for call in similarity_spy.call_args_list] == [[1], [2]]
    assert acquisition.compounds == [[1], [2]]


def test_without_reference_stops_at_the_limit(make_service, mocker):
    service = make_service(
        {1: (11, "A|1"), 2: (11, "A|1"), 3: (12, "B|2"), 4: (13, "C|3")},
        {1: {1: 1.0, 2: 1.0, 3: 1.0}, 2: {4: 1.0}},
    )
    identifiers_spy = mocker.spy(service, "list_identifiers")
    similarity_spy = mocker.spy(service, "similarity")
    finished = []

    acquisition = SimilarityAcquire(
        service, [1, 2], 2, on_finished=lambda: finished.append(True)
    )
    acquisition.start()

    assert acquisition.compounds == [[1, 2], [3]]
    assert acquisition.score == [None, None]
    assert identifiers_spy.call_count == 1
    assert similarity_spy.call_count == 0
    assert finished == [True]
    assert acquisition.progress_bars() is None
    assert acquisition.progress_text() == "2 compounds"


def test_probes_only_lists_probe_compounds(make_service, mocker):
    service = make_service(
        {1: (11, "A|1"), 2: (12, "B|2")},
        {1: {1: 1.0}},
        probes={1: [2]},
    )
    identifiers_spy = mocker.spy(service, "list_identifiers")

    acquisition = SimilarityAcquire(service, [1], 5, probes_only=True)
    acquisition.start()

    identifiers_spy.assert_called_once_with([1], probes_only=True, require_molecule=True)
    assert acquisition.compounds == [[2]]


def test_compounds_without_structure_are_skipped(make_service):
    service = _service(
        make_service,
        {1: (11, "sim=0.5"), 2: (12, None)},
        {1: {1: 1.0, 2: 1.0}},
    )

    acquisition = SimilarityAcquire(service, [1], 5, similar_to=REFERENCE)
    acquisition.start()

    assert acquisition.compounds == [[1]]


def test_progress_reporting(make_service):
    service = _service(
        make_service,
        {1: (11, "sim=0.5"), 2: (12, "sim=0.0")},
        {1: {1: 1.0}, 2: {2: 1.0}},
    )
    acquisition = SimilarityAcquire(service, [1, 2], 5, similar_to=REFERENCE)

    assert acquisition.progress_fraction() == 0.0

    acquisition.step()  # identifiers of assay 1
    assert acquisition.progress_fraction() == 0.0
    acquisition.step()  # similarity of assay 1
    assert acquisition.progress_fraction() == pytest.approx(0.5)
    assert acquisition.progress_bars() == [0.5]
    assert acquisition.progress_text() == "1 compound"

    acquisition.start()
    assert acquisition.progress_fraction() == pytest.approx(1.0)
    assert acquisition.progress_bars() == [0.5, 0.0]
    assert acquisition.progress_text() == "1 compound"


def test_max_compounds_is_required(make_service):
    with pytest.raises(ValueError):
        SimilarityAcquire(make_service({}), [1], None)
