from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from urllib.parse import quote, unquote, urlparse

import httpx
from bs4 import BeautifulSoup

from litemark.errors import BackendUnavailableError
from litemark.storage.base import DocumentStore, require_option


DEFAULT_HEADERS = {"User-Agent": "LiteMark/1.0"}

UPLOAD_TIMEOUT = 60.0
LISTING_TIMEOUT = 15.0
UPLOAD_ATTEMPTS = 3
RETRY_STEP_SECONDS = 3.0

_GATEWAY_STATUSES = {502, 503, 504}
_DIRECTORY_OK_STATUSES = {201, 207, 405, 409}


@dataclass
class WebDAVEntry:
    href: str
    name: str
    last_modified: str | None = None
    is_collection: bool = False


class WebDAVClient:
    """Minimal WebDAV client over httpx (GET, PUT, MKCOL, PROPFIND, DELETE)."""

    def __init__(
        self,
        url: str,
        username: str | None = None,
        password: str | None = None,
        timeout: float = LISTING_TIMEOUT,
        logger: logging.Logger | None = None,
        transport: httpx.BaseTransport | None = None,
        sleep=time.sleep,
    ):
        self.base_url = url.rstrip("/")
        self.logger = logger or logging.getLogger("litemark.webdav")
        self._sleep = sleep
        auth = (username or "", password or "") if username or password else None
        self._http = httpx.Client(
            auth=auth,
            timeout=timeout,
            headers=DEFAULT_HEADERS,
            transport=transport,
        )

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def close(self) -> None:
        self._http.close()

    def url_for(self, path: str) -> str:
        path = (path or "").lstrip("/")
        if not path:
            return self.base_url
        return f"{self.base_url}/{quote(path, safe='/')}"

    def get_text(self, path: str) -> str | None:
        response = self._http.get(self.url_for(path))
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.text

    def ensure_directory(self, path: str) -> None:
        """Create every parent collection of ``path``; failures are only logged."""
        parts = [part for part in path.strip("/").split("/") if part]
        directory = ""
        for part in parts[:-1]:
            directory = f"{directory}/{part}" if directory else part
            url = self.url_for(directory) + "/"
            try:
                response = self._http.request("MKCOL", url)
            except httpx.HTTPError as exc:
                self.logger.warning("[webdav] MKCOL %s failed: %s", url, exc)
                continue
            if response.status_code not in _DIRECTORY_OK_STATUSES:
                self.logger.warning(
                    "[webdav] MKCOL %s returned %s", url, response.status_code
                )

    def upload(self, path: str, content: str, attempts: int = UPLOAD_ATTEMPTS) -> None:
        """PUT ``content`` at ``path``, retrying gateway and transport errors.

        Attempt ``n`` failing with a retryable error waits ``n * 3`` seconds
        before the next one.
        """
        url = self.url_for(path)
        body = content.encode("utf-8")
        headers = {"Content-Type": "application/json; charset=utf-8"}

        for attempt in range(1, attempts + 1):
            try:
                response = self._http.put(
                    url, content=body, headers=headers, timeout=UPLOAD_TIMEOUT
                )
            except httpx.TransportError as exc:
                if attempt < attempts:
                    wait = attempt * RETRY_STEP_SECONDS
                    self.logger.warning(
                        "[webdav] upload to %s failed (%s), retrying in %.0fs (%s/%s)",
                        url,
                        exc.__class__.__name__,
                        wait,
                        attempt,
                        attempts,
                    )
                    self._sleep(wait)
                    continue
                raise BackendUnavailableError(
                    f"WebDAV upload failed after {attempts} attempts: {exc}",
                    backend="webdav",
                ) from exc

            if response.status_code in _GATEWAY_STATUSES:
                if attempt < attempts:
                    wait = attempt * RETRY_STEP_SECONDS
                    self.logger.warning(
                        "[webdav] upload to %s got gateway error %s, retrying in %.0fs (%s/%s)",
                        url,
                        response.status_code,
                        wait,
                        attempt,
                        attempts,
                    )
                    self._sleep(wait)
                    continue
                raise BackendUnavailableError(
                    f"WebDAV gateway error ({response.status_code}) after {attempts} attempts",
                    backend="webdav",
                )

            if response.is_error:
                self.logger.error(
                    "[webdav] upload to %s failed (%s): %s",
                    url,
                    response.status_code,
                    response.text[:500],
                )
                raise BackendUnavailableError(
                    f"WebDAV upload failed ({response.status_code}): {response.text[:200]}",
                    backend="webdav",
                )

            self.logger.info("[webdav] uploaded %s (%s bytes)", url, len(body))
            return

    def list_directory(self, path: str) -> list[WebDAVEntry]:
        url = self.url_for(path).rstrip("/") + "/"
        response = self._http.request("PROPFIND", url, headers={"Depth": "1"})
        if response.status_code not in {200, 207}:
            raise BackendUnavailableError(
                f"WebDAV PROPFIND {url} returned {response.status_code}",
                backend="webdav",
            )

        base_path = unquote(urlparse(url).path).rstrip("/")
        entries: list[WebDAVEntry] = []
        soup = BeautifulSoup(response.text, "xml")
        for node in soup.find_all("response"):
            href_node = node.find("href")
            if href_node is None:
                continue
            href = unquote(href_node.get_text(strip=True))
            href_path = unquote(urlparse(href).path).rstrip("/")
            if href_path == base_path:
                continue
            modified = node.find("getlastmodified")
            entries.append(
                WebDAVEntry(
                    href=href,
                    name=href_path.rsplit("/", 1)[-1],
                    last_modified=modified.get_text(strip=True) if modified else None,
                    is_collection=node.find("collection") is not None,
                )
            )
        return entries

    def delete(self, path: str) -> None:
        response = self._http.delete(self.url_for(path))
        if response.status_code not in {200, 204, 404}:
            raise BackendUnavailableError(
                f"WebDAV DELETE {path} returned {response.status_code}: {response.text[:200]}",
                backend="webdav",
            )

    def test_connection(self) -> bool:
        try:
            response = self._http.request(
                "PROPFIND", self.base_url, headers={"Depth": "0"}
            )
        except httpx.HTTPError as exc:
            self.logger.error("[webdav] connection test to %s failed: %s", self.base_url, exc)
            return False
        return response.status_code in {200, 207, 404}


class WebDAVDocumentStore(DocumentStore):
    kind = "webdav"

    def __init__(self, paths, config, timeout=15.0, logger=None, client=None):
        super().__init__(paths, logger=logger)
        self._config = config
        self._timeout = timeout
        self._client = client

    def _ensure_client(self) -> WebDAVClient:
        if self._client is None:
            self._client = WebDAVClient(
                require_option("WEBDAV_URL", self._config.get("WEBDAV_URL"), self.kind),
                username=self._config.get("WEBDAV_USERNAME"),
                password=self._config.get("WEBDAV_PASSWORD"),
                timeout=self._timeout,
                logger=self.logger,
            )
        return self._client

    def fetch_text(self, path: str) -> str | None:
        return self._ensure_client().get_text(path)

    def store_text(self, path: str, body: str) -> None:
        client = self._ensure_client()
        client.ensure_directory(path)
        client.upload(path, body)
