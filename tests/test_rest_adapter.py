from __future__ import annotations

import pytest
import requests

from compoundacquire.services import RESTListingService

BASE_URL = "https://assays.example.org/"
ENDPOINT = "https://assays.example.org/REST/ListCompounds"


class _FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


def _service_returning(mocker, payload, status_code=200):
    service = RESTListingService(BASE_URL, timeout=5)
    post = mocker.patch.object(
        service._session, "post", return_value=_FakeResponse(payload, status_code)
    )
    return service, post


def test_list_identifiers_request_and_parsing(mocker):
    service, post = _service_returning(
        mocker, {"compoundIDList": [5, 9], "hashECFP6List": [111, 222]}
    )

    batch = service.list_identifiers([42], probes_only=True)

    assert batch.compound_ids == [5, 9]
    assert batch.hashes == [111, 222]
    args, kwargs = post.call_args
    assert args[0] == ENDPOINT
    assert kwargs["timeout"] == 5
    assert kwargs["json"] == {
        "assayIDList": [42],
        "justIdentifiers": True,
        "probesOnly": True,
        "requireMolecule": True,
    }


def test_list_actives_sends_sorted_whitelist(mocker):
    service, post = _service_returning(mocker, {"compoundIDList": [], "hashECFP6List": []})

    service.list_actives([1], hash_whitelist={30, 10, 20})

    params = post.call_args.kwargs["json"]
    assert params["activesOnly"] is True
    assert params["justIdentifiers"] is True
    assert params["hashECFP6List"] == [10, 20, 30]


def test_list_actives_without_whitelist_omits_it(mocker):
    service, post = _service_returning(mocker, {"compoundIDList": [], "hashECFP6List": []})

    service.list_actives([1])

    assert "hashECFP6List" not in post.call_args.kwargs["json"]


def test_list_measurements_parsing(mocker):
    service, post = _service_returning(
        mocker,
        {
            "compoundIDList": [5, 9],
            "hashECFP6List": [111, 222],
            "measureCompound": [5, 5, 9],
            "measureValue": [1.0, 0.0, None],
        },
    )

    batch = service.list_measurements([1])

    assert post.call_args.kwargs["json"]["justIdentifiers"] is False
    assert batch.measure_compounds == [5, 5, 9]
    assert batch.measure_values == [1.0, 0.0, None]


def test_similarity_request(mocker):
    service, post = _service_returning(
        mocker,
        {"compoundIDList": [5, 9], "hashECFP6List": [111, 222], "similarity": [0.75, None]},
    )

    batch = service.similarity([5, 9], "molfile")

    assert post.call_args.kwargs["json"]["similarTo"] == "molfile"
    assert post.call_args.kwargs["json"]["compoundIDList"] == [5, 9]
    assert batch.similarity == [0.75, 0.0]


def test_fetch_structures_keeps_request_order(mocker):
    service, _ = _service_returning(
        mocker, {"molfileList": ["m9", "m5"], "hashECFP6List": [222, 111]}
    )

    batch = service.fetch_structures([9, 5])

    assert batch.compound_ids == [9, 5]
    assert batch.molfiles == ["m9", "m5"]


def test_fetch_structures_length_mismatch(mocker):
    service, _ = _service_returning(mocker, {"molfileList": ["m9"], "hashECFP6List": [222]})

    with pytest.raises(RuntimeError):
        service.fetch_structures([9, 5])


def test_mismatched_parallel_lists_are_rejected(mocker):
    service, _ = _service_returning(mocker, {"compoundIDList": [5, 9], "hashECFP6List": [111]})

    with pytest.raises(ValueError):
        service.list_identifiers([1])


def test_http_errors_propagate(mocker):
    service, _ = _service_returning(mocker, {}, status_code=500)

    with pytest.raises(requests.exceptions.HTTPError):
        service.list_actives([1])


def test_non_object_response_is_rejected(mocker):
    service, _ = _service_returning(mocker, [1, 2, 3])

    with pytest.raises(ValueError):
        service.list_actives([1])


def test_session_is_configured_with_retries():
    service = RESTListingService(BASE_URL, max_retries=4, headers={"X-Token": "abc"})

    adapter = service._session.get_adapter(ENDPOINT)

    assert adapter.max_retries.total == 4
    assert 503 in adapter.max_retries.status_forcelist
    assert service.headers == {"X-Token": "abc"}


def test_context_manager_closes_session():
    with RESTListingService(BASE_URL) as service:
        assert service._session is not None

    assert service._session is None


@pytest.mark.parametrize("base_url", ["", None, 42])
def test_invalid_base_url(base_url):
    with pytest.raises(ValueError):
        RESTListingService(base_url)
