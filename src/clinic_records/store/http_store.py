"""REST record store.

Talks to the clinic records API:

    GET    /patients          list records
    POST   /patients          create a record, responds with the created document
    GET    /patients/{id}     fetch one record
    PUT    /patients/{id}     overwrite a record
    DELETE /patients/{id}     delete a record
"""

import logging
from typing import Any, List, Optional

import requests

from clinic_records.models.record import PatientRecord
from clinic_records.store.base import RecordStore
from clinic_records.transport.http_client import ConnectionPool
from clinic_records.utils.exceptions import RecordNotFoundError, StoreError

logger = logging.getLogger(__name__)


class HttpRecordStore(RecordStore):
    """Record store backed by the REST patients API.

    Network and HTTP failures are raised as StoreError chained to the
    original requests exception, so ``categorize_error`` can tell transient
    failures (timeouts, 5xx) from permanent ones (4xx).

    Attributes:
        base_url: API root, e.g. ``http://localhost:3001/api``
        pool: Shared connection pool
    """

    def __init__(self, base_url: str, pool: Optional[ConnectionPool] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.pool = pool or ConnectionPool()

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {url}")
        try:
            response = self.pool.get_session().request(
                method, url, timeout=self.pool.config.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise StoreError(f"{method} {url} failed: {e}") from e

        if response.status_code == 404:
            raise RecordNotFoundError(f"{method} {url}: not found")
        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            raise StoreError(f"{method} {url} failed: {self._error_detail(response)}") from e
        return response

    @staticmethod
    def _error_detail(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return f"HTTP {response.status_code}"
        if isinstance(body, dict) and body.get("error"):
            return f"HTTP {response.status_code}: {body['error']}"
        return f"HTTP {response.status_code}"

    @staticmethod
    def _json(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise StoreError(f"Invalid JSON in response from {response.url}") from e

    def save(self, record: PatientRecord) -> str:
        document = record.to_dict()
        document.pop("id", None)
        created = self._json(self._request("POST", "/patients", json=document))
        record_id = created.get("id") if isinstance(created, dict) else None
        if not record_id:
            raise StoreError("Store did not return an id for the created record")
        return str(record_id)

    def list_all(self) -> List[PatientRecord]:
        body = self._json(self._request("GET", "/patients"))
        if isinstance(body, dict):
            body = body.get("patients", [])
        if not isinstance(body, list):
            raise StoreError("Unexpected response listing patients: expected a JSON array")
        return [PatientRecord.from_dict(d) for d in body if isinstance(d, dict)]

    def get(self, record_id: str) -> PatientRecord:
        return PatientRecord.from_dict(self._json(self._request("GET", f"/patients/{record_id}")))

    def update(self, record_id: str, record: PatientRecord) -> None:
        document = record.to_dict()
        document["id"] = record_id
        self._request("PUT", f"/patients/{record_id}", json=document)

    def delete(self, record_id: str) -> None:
        self._request("DELETE", f"/patients/{record_id}")

    def close(self) -> None:
        self.pool.close()
