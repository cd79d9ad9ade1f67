from __future__ import annotations

from qcloud_cos import CosConfig, CosS3Client
from qcloud_cos.cos_exception import CosServiceError

from litemark.storage.base import DocumentStore, require_option


class COSDocumentStore(DocumentStore):
    """Tencent Cloud Object Storage."""

    kind = "cos"

    def __init__(self, paths, config, timeout=15.0, logger=None, client=None):
        super().__init__(paths, logger=logger)
        self._config = config
        self._timeout = timeout
        self._client = client
        self._bucket: str | None = None

    def _ensure_client(self):
        if self._client is None or self._bucket is None:
            config = self._config
            self._bucket = require_option("COS_BUCKET", config.get("COS_BUCKET"), self.kind)
            if self._client is None:
                self._client = CosS3Client(
                    CosConfig(
                        Region=require_option(
                            "COS_REGION", config.get("COS_REGION"), self.kind
                        ),
                        SecretId=require_option(
                            "COS_SECRET_ID", config.get("COS_SECRET_ID"), self.kind
                        ),
                        SecretKey=require_option(
                            "COS_SECRET_KEY", config.get("COS_SECRET_KEY"), self.kind
                        ),
                        Timeout=int(self._timeout),
                    )
                )
        return self._client, self._bucket

    def fetch_text(self, path: str) -> str | None:
        client, bucket = self._ensure_client()
        try:
            response = client.get_object(Bucket=bucket, Key=path)
        except CosServiceError as exc:
            if exc.get_status_code() == 404 or exc.get_error_code() == "NoSuchKey":
                return None
            raise
        body = response.get("Body")
        if body is None:
            return None
        return body.get_raw_stream().read().decode("utf-8")

    def store_text(self, path: str, body: str) -> None:
        client, bucket = self._ensure_client()
        client.put_object(
            Bucket=bucket,
            Key=path,
            Body=body.encode("utf-8"),
            ContentType="application/json",
        )
