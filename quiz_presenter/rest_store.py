"""
DataStore backed by a hosted backend-as-a-service.

Tables are reached through the backend's REST endpoint
(``/rest/v1/<table>``) and files through its storage endpoint
(``/storage/v1/object/<bucket>/<path>``).
"""
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from .data_manager import (
    DataStore,
    Filters,
    Order,
    RecordNotFoundError,
    RecordValidationError,
    TransportError,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15


def _filter_value(value: Any) -> str:
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return f"eq.{str(value).lower()}"
    return f"eq.{value}"


def _error_message(response: requests.Response) -> str:
    """Pull the backend's own error text out of a failed response."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "error_description", "error", "msg"):
            if body.get(key):
                return str(body[key])
    return response.text.strip() or f"HTTP {response.status_code}"


class RestDataStore(DataStore):
    """Reads and writes tables and storage buckets over HTTP."""

    def __init__(self, base_url: str, api_key: str, timeout: int = DEFAULT_TIMEOUT, session: Optional[requests.Session] = None):
        if not base_url:
            raise ValueError("Backend URL is required for the REST data store")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
        })

    def read(
        self,
        collection: str,
        filters: Filters = None,
        order: Order = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        params: Dict[str, str] = {"select": "*"}
        for key, value in (filters or {}).items():
            params[key] = _filter_value(value)
        if order:
            params["order"] = ",".join(
                f"{key}.{'asc' if ascending else 'desc'}" for key, ascending in order
            )
        if limit is not None:
            params["limit"] = str(limit)

        data = self._request("GET", self._table_url(collection), params=params)
        return data if isinstance(data, list) else []

    def insert(self, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        data = self._request(
            "POST",
            self._table_url(collection),
            json=record,
            headers={"Prefer": "return=representation"}
        )
        if not data:
            raise RecordValidationError(f"Insert into {collection} returned no record")
        return data[0] if isinstance(data, list) else data

    def update(self, collection: str, record_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        data = self._request(
            "PATCH",
            self._table_url(collection),
            params={"id": _filter_value(record_id)},
            json=patch,
            headers={"Prefer": "return=representation"}
        )
        if not data:
            raise RecordNotFoundError(f"No record with id {record_id} in {collection}")
        return data[0] if isinstance(data, list) else data

    def delete(self, collection: str, record_id: str) -> int:
        data = self._request(
            "DELETE",
            self._table_url(collection),
            params={"id": _filter_value(record_id)},
            headers={"Prefer": "return=representation"}
        )
        return len(data) if isinstance(data, list) else 0

    def upload_file(self, bucket: str, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        object_path = f"{quote(bucket)}/{quote(path)}"
        self._request(
            "POST",
            f"{self.base_url}/storage/v1/object/{object_path}",
            data=data,
            headers={
                "Content-Type": content_type or "application/octet-stream",
                "Cache-Control": "max-age=3600",
                "x-upsert": "false",
            }
        )
        logger.info(f"Uploaded {len(data)} bytes to {bucket}/{path}")
        return self.get_public_url(bucket, path)

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{quote(bucket)}/{quote(path)}"

    def _table_url(self, collection: str) -> str:
        return f"{self.base_url}/rest/v1/{quote(collection)}"

    def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"{method} {url} failed: {e}")
            raise TransportError(str(e)) from e

        if response.status_code >= 500:
            message = _error_message(response)
            logger.error(f"{method} {url} returned {response.status_code}: {message}")
            raise TransportError(message)
        if response.status_code >= 400:
            message = _error_message(response)
            logger.warning(f"{method} {url} rejected with {response.status_code}: {message}")
            raise RecordValidationError(message)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"Invalid JSON from backend: {e}") from e
