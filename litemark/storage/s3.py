from __future__ import annotations

from dataclasses import dataclass

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError

from litemark.storage.base import DocumentStore, require_option


_MISSING_CODES = {"NoSuchKey", "NotFound", "404"}


@dataclass
class S3Options:
    bucket: str
    region: str
    access_key_id: str
    secret_access_key: str
    endpoint: str | None = None
    force_path_style: bool = False


def s3_options_from_config(config, driver: str = "s3") -> S3Options:
    if driver == "s3":
        return S3Options(
            bucket=require_option("S3_BUCKET", config.get("S3_BUCKET"), driver),
            region=require_option("S3_REGION", config.get("S3_REGION"), driver),
            access_key_id=require_option(
                "S3_ACCESS_KEY_ID", config.get("S3_ACCESS_KEY_ID"), driver
            ),
            secret_access_key=require_option(
                "S3_SECRET_ACCESS_KEY", config.get("S3_SECRET_ACCESS_KEY"), driver
            ),
            endpoint=config.get("S3_ENDPOINT") or None,
            force_path_style=bool(config.get("S3_FORCE_PATH_STYLE")),
        )

    endpoint = config.get("R2_ENDPOINT")
    if not endpoint and config.get("R2_ACCOUNT_ID"):
        endpoint = f"https://{config['R2_ACCOUNT_ID']}.r2.cloudflarestorage.com"
    return S3Options(
        bucket=require_option("R2_BUCKET", config.get("R2_BUCKET"), driver),
        region=config.get("R2_REGION") or "auto",
        access_key_id=require_option(
            "R2_ACCESS_KEY_ID", config.get("R2_ACCESS_KEY_ID"), driver
        ),
        secret_access_key=require_option(
            "R2_SECRET_ACCESS_KEY", config.get("R2_SECRET_ACCESS_KEY"), driver
        ),
        endpoint=require_option("R2_ENDPOINT or R2_ACCOUNT_ID", endpoint, driver),
        force_path_style=bool(config.get("R2_FORCE_PATH_STYLE", True)),
    )


class S3DocumentStore(DocumentStore):
    """S3-compatible object storage (AWS S3, Cloudflare R2, MinIO...)."""

    kind = "s3"

    def __init__(self, paths, config, driver="s3", timeout=15.0, logger=None, client=None):
        super().__init__(paths, logger=logger)
        self.kind = driver
        self._config = config
        self._timeout = timeout
        self._client = client
        self._bucket: str | None = None

    def _ensure_client(self):
        if self._client is None or self._bucket is None:
            options = s3_options_from_config(self._config, self.kind)
            if self._client is None:
                self._client = boto3.client(
                    "s3",
                    region_name=options.region,
                    endpoint_url=options.endpoint,
                    aws_access_key_id=options.access_key_id,
                    aws_secret_access_key=options.secret_access_key,
                    config=BotoConfig(
                        connect_timeout=self._timeout,
                        read_timeout=self._timeout,
                        s3={
                            "addressing_style": "path"
                            if options.force_path_style
                            else "auto"
                        },
                    ),
                )
            self._bucket = options.bucket
        return self._client, self._bucket

    def fetch_text(self, path: str) -> str | None:
        client, bucket = self._ensure_client()
        try:
            response = client.get_object(Bucket=bucket, Key=path)
        except ClientError as exc:
            error = exc.response.get("Error", {})
            status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            if error.get("Code") in _MISSING_CODES or status == 404:
                return None
            raise
        body = response.get("Body")
        if body is None:
            return None
        return body.read().decode("utf-8")

    def store_text(self, path: str, body: str) -> None:
        client, bucket = self._ensure_client()
        client.put_object(
            Bucket=bucket,
            Key=path,
            Body=body.encode("utf-8"),
            ContentType="application/json",
        )
