from __future__ import annotations

import httpx

from litemark.storage.base import DocumentStore, require_option
from litemark.storage.webdav import DEFAULT_HEADERS


DEFAULT_API_URL = "https://blob.vercel-storage.com"
API_VERSION = "7"
LIST_LIMIT = 100


class VercelBlobDocumentStore(DocumentStore):
    """Vercel Blob over its REST API.

    Blobs are looked up by listing with the document path as prefix and
    downloading the exact pathname match. Writes overwrite the same pathname
    (no random suffix) so the next lookup finds them again.
    """

    kind = "vercel-blob"

    def __init__(self, paths, config, timeout=15.0, logger=None, transport=None):
        super().__init__(paths, logger=logger)
        self._config = config
        self._timeout = timeout
        self._transport = transport
        self._http: httpx.Client | None = None

    @property
    def api_url(self) -> str:
        return (self._config.get("VERCEL_BLOB_API_URL") or DEFAULT_API_URL).rstrip("/")

    def _ensure_client(self) -> tuple[httpx.Client, dict[str, str]]:
        token = require_option(
            "BLOB_READ_WRITE_TOKEN", self._config.get("BLOB_READ_WRITE_TOKEN"), self.kind
        )
        if self._http is None:
            self._http = httpx.Client(
                timeout=self._timeout,
                headers=DEFAULT_HEADERS,
                transport=self._transport,
            )
        return self._http, {
            "authorization": f"Bearer {token}",
            "x-api-version": API_VERSION,
        }

    def find_blob(self, path: str) -> dict | None:
        http, headers = self._ensure_client()
        params = {"prefix": path, "limit": str(LIST_LIMIT)}
        while True:
            response = http.get(f"{self.api_url}/", params=params, headers=headers)
            response.raise_for_status()
            payload = response.json()
            for blob in payload.get("blobs") or []:
                if blob.get("pathname") == path:
                    return blob
            cursor = payload.get("cursor")
            if not payload.get("hasMore") or not cursor:
                return None
            params["cursor"] = cursor

    def fetch_text(self, path: str) -> str | None:
        blob = self.find_blob(path)
        if blob is None:
            return None
        http, _ = self._ensure_client()
        response = http.get(blob.get("downloadUrl") or blob["url"])
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.text

    def store_text(self, path: str, body: str) -> None:
        http, headers = self._ensure_client()
        headers.update(
            {
                "x-content-type": "application/json",
                "x-add-random-suffix": "0",
                "x-allow-overwrite": "1",
            }
        )
        response = http.put(
            f"{self.api_url}/",
            params={"pathname": path},
            content=body.encode("utf-8"),
            headers=headers,
        )
        response.raise_for_status()
