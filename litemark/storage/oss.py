from __future__ import annotations

import oss2

from litemark.storage.base import DocumentStore, require_option


def oss_endpoint(region: str, internal: bool = False, secure: bool = True) -> str:
    scheme = "https" if secure else "http"
    if not region.startswith("oss-"):
        region = f"oss-{region}"
    host = f"{region}-internal" if internal else region
    return f"{scheme}://{host}.aliyuncs.com"


class OSSDocumentStore(DocumentStore):
    """Aliyun Object Storage Service."""

    kind = "oss"

    def __init__(self, paths, config, timeout=15.0, logger=None, bucket=None):
        super().__init__(paths, logger=logger)
        self._config = config
        self._timeout = timeout
        self._bucket = bucket

    def _ensure_bucket(self):
        if self._bucket is None:
            config = self._config
            region = require_option("OSS_REGION", config.get("OSS_REGION"), self.kind)
            bucket_name = require_option("OSS_BUCKET", config.get("OSS_BUCKET"), self.kind)
            auth = oss2.Auth(
                require_option(
                    "OSS_ACCESS_KEY_ID", config.get("OSS_ACCESS_KEY_ID"), self.kind
                ),
                require_option(
                    "OSS_SECRET_ACCESS_KEY",
                    config.get("OSS_SECRET_ACCESS_KEY"),
                    self.kind,
                ),
            )
            endpoint = config.get("OSS_ENDPOINT") or oss_endpoint(
                region,
                internal=bool(config.get("OSS_INTERNAL")),
                secure=bool(config.get("OSS_SECURE", True)),
            )
            self._bucket = oss2.Bucket(
                auth, endpoint, bucket_name, connect_timeout=self._timeout
            )
        return self._bucket

    def fetch_text(self, path: str) -> str | None:
        bucket = self._ensure_bucket()
        try:
            result = bucket.get_object(path)
        except oss2.exceptions.NotFound:
            return None
        return result.read().decode("utf-8")

    def store_text(self, path: str, body: str) -> None:
        bucket = self._ensure_bucket()
        bucket.put_object(
            path, body.encode("utf-8"), headers={"Content-Type": "application/json"}
        )
