from __future__ import annotations

from typing import Any, Iterable, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from compoundacquire.services.base import (
    IdentifierBatch,
    ListingService,
    MeasurementBatch,
    SimilarityBatch,
    StructureBatch,
)


class RESTListingService(ListingService):
    """
    Listing service backed by the BioAssay Express `REST/ListCompounds` endpoint.

    All five operations are POSTs of a JSON parameter object to the same endpoint; the
    combination of parameters selects what the server returns.

    Attributes:
        base_url (str): Root URL of the server, e.g. "https://www.bioassayexpress.com".

        timeout (Union[int, float]): Timeout in seconds for each request.
    """

    name = "rest"
    endpoint = "REST/ListCompounds"

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = 30,
        max_retries: Optional[int] = 2,
        pool_connections: Optional[int] = None,
        pool_maxsize: Optional[int] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        """
        Initialize the service client.

        Args:
            base_url (str): Root URL of the server; the endpoint path is appended to it.

            timeout (Optional[float]): Timeout in seconds for each request. Defaults to 30.

            max_retries (Optional[int]): Transport-level retries for connection errors and
            gateway failures. Defaults to 2.

            pool_connections (Optional[int]): The number of connection pools to cache. Defaults to 2.

            pool_maxsize (Optional[int]): The maximum number of connections to save in the pool.
            The minimum value is always 10.

            headers (Optional[dict[str, str]]): Extra headers sent with every request.
        """
        if not isinstance(base_url, str) or not base_url:
            raise ValueError("base_url must be a non-empty string.")

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.headers = dict(headers) if headers else {}
        self._session = None
        self._init_session(pool_connections, pool_maxsize)

    def _init_session(
        self, pool_connections: Optional[int] = None, pool_maxsize: Optional[int] = None
    ) -> None:
        """
        Initialize the HTTP session used for all requests.

        Notes:
            - This method is idempotent; it will not reinitialize an existing session.
            - Retries are limited to connection problems and gateway errors; a request that
              reached the server and failed for another reason is raised to the caller.
        """
        if self._session is not None:
            return

        if pool_connections is None:
            pool_connections = 2

        if pool_maxsize is None:
            # default from documentation
            pool_maxsize = 10
        else:
            pool_maxsize = max(pool_maxsize, 10)

        retry = Retry(
            total=self.max_retries,
            backoff_factor=0.5,
            status_forcelist=(502, 503, 504),
            allowed_methods=frozenset({"POST"}),
            raise_on_status=False,
        )

        self._session = requests.Session()
        adapter = HTTPAdapter(
            pool_connections=pool_connections,
            pool_maxsize=pool_maxsize,
            max_retries=retry,
        )
        self._session.mount("https://", adapter)
        self._session.mount("http://", adapter)

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None

    def __enter__(self) -> "RESTListingService":
        return self

    def __exit__(self, exception_type, exception_value, exception_traceback) -> None:
        self.close()

    def _request(self, params: dict[str, Any]) -> dict[str, Any]:
        """
        POST one parameter object to the endpoint and return the decoded JSON.

        Raises:
            requests.exceptions.RequestException: On connection errors or a non-2xx status.
            ValueError: If the response is not a JSON object.
        """
        if self._session is None:
            self._init_session()

        headers = {"Content-Type": "application/json;charset=utf-8"}
        headers.update(self.headers)

        response = self._session.post(
            f"{self.base_url}/{self.endpoint}",
            json=params,
            headers=headers,
            timeout=self.timeout,
        )
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("The service did not return a JSON object.")
        return data

    @staticmethod
    def _whitelist(params: dict[str, Any], hash_whitelist: Optional[Iterable[int]]) -> dict[str, Any]:
        if hash_whitelist is not None:
            params["hashECFP6List"] = sorted(hash_whitelist)
        return params

    def list_identifiers(
        self,
        assay_ids: Iterable[int],
        probes_only: bool = False,
        require_molecule: bool = True,
    ) -> IdentifierBatch:
        data = self._request(
            {
                "assayIDList": list(assay_ids),
                "justIdentifiers": True,
                "probesOnly": probes_only,
                "requireMolecule": require_molecule,
            }
        )
        return IdentifierBatch(
            list(data.get("compoundIDList", [])), list(data.get("hashECFP6List", []))
        )

    def list_actives(
        self,
        assay_ids: Iterable[int],
        hash_whitelist: Optional[Iterable[int]] = None,
    ) -> IdentifierBatch:
        params = {
            "assayIDList": list(assay_ids),
            "justIdentifiers": True,
            "activesOnly": True,
            "requireMolecule": True,
        }
        data = self._request(self._whitelist(params, hash_whitelist))
        return IdentifierBatch(
            list(data.get("compoundIDList", [])), list(data.get("hashECFP6List", []))
        )

    def list_measurements(
        self,
        assay_ids: Iterable[int],
        hash_whitelist: Optional[Iterable[int]] = None,
    ) -> MeasurementBatch:
        # activesOnly without justIdentifiers restricts to the boolean active/inactive measurement type
        params = {
            "assayIDList": list(assay_ids),
            "justIdentifiers": False,
            "activesOnly": True,
            "requireMolecule": True,
        }
        data = self._request(self._whitelist(params, hash_whitelist))
        return MeasurementBatch(
            list(data.get("compoundIDList", [])),
            list(data.get("hashECFP6List", [])),
            list(data.get("measureCompound", [])),
            list(data.get("measureValue", [])),
        )

    def similarity(
        self, compound_ids: Iterable[int], similar_to: str
    ) -> SimilarityBatch:
        data = self._request(
            {
                "compoundIDList": list(compound_ids),
                "justIdentifiers": True,
                "similarTo": similar_to,
            }
        )
        return SimilarityBatch(
            list(data.get("compoundIDList", [])),
            list(data.get("hashECFP6List", [])),
            [float(value or 0) for value in data.get("similarity", [])],
        )

    def fetch_structures(self, compound_ids: Iterable[int]) -> StructureBatch:
        compound_ids = list(compound_ids)
        data = self._request({"compoundIDList": compound_ids})
        molfiles = list(data.get("molfileList", []))
        hashes = list(data.get("hashECFP6List", []))
        if len(molfiles) != len(compound_ids):
            raise RuntimeError(
                "The number of returned structures should be equal to the number of compounds asked for."
            )
        return StructureBatch(compound_ids, molfiles, hashes)
