# backends/http.py
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from catalog.batch_store import serialized_size
from catalog.errors import InvalidRecord, SizeExceeded, StoreUnavailable, WriteConflict
from catalog.logger import get_logger

from .base import DocumentStore

logger = get_logger(__name__)


class HTTPStore(DocumentStore):
    """
    JSON document service reachable over HTTP.

      GET    {base}/{collection}/{key}   -> document, 404 when absent
      PUT    {base}/{collection}/{key}   <- document
      DELETE {base}/{collection}/{key}
      GET    {base}/{collection}         -> {"keys": [...]}
    """

    name = "http"

    def __init__(self, base_url: str, timeout: float = 30.0, session: requests.Session | None = None):
        if not base_url:
            raise ValueError("HTTP store requires a base URL (STORE_URL)")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    def _url(self, collection: str, key: str | None = None) -> str:
        url = f"{self.base_url}/{quote(collection, safe='')}"
        if key is not None:
            url = f"{url}/{quote(key, safe='')}"
        return url

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            r = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise StoreUnavailable(f"{method} {url}: {e}") from e
        if r.status_code >= 500:
            raise StoreUnavailable(f"{method} {url}: HTTP {r.status_code}")
        if r.status_code == 409:
            raise WriteConflict(f"{method} {url}: HTTP 409")
        return r

    @staticmethod
    def _json(r: requests.Response) -> Any:
        try:
            return r.json()
        except ValueError as e:
            raise InvalidRecord(f"{r.url}: response is not JSON: {e}") from e

    def ensure(self) -> None:
        logger.debug("Using HTTP document store at %s", self.base_url)

    def get(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        r = self._request("GET", self._url(collection, key))
        if r.status_code == 404:
            return None
        r.raise_for_status()
        return self._json(r)

    def put(self, collection: str, key: str, value: Dict[str, Any]) -> None:
        r = self._request("PUT", self._url(collection, key), json=value)
        if r.status_code == 413:
            raise SizeExceeded(key, serialized_size(value))
        r.raise_for_status()

    def delete(self, collection: str, key: str) -> None:
        r = self._request("DELETE", self._url(collection, key))
        if r.status_code == 404:
            return
        r.raise_for_status()

    def keys(self, collection: str) -> List[str]:
        r = self._request("GET", self._url(collection))
        if r.status_code == 404:
            return []
        r.raise_for_status()
        data = self._json(r)
        if not isinstance(data, dict):
            raise InvalidRecord(f"{r.url}: key listing is not an object")
        return [str(k) for k in data.get("keys", [])]
