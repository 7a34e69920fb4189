"""
S3-based content store.

Object keys:
- {prefix}/blobs/{cid}.json for content-addressed objects
- {prefix}/{path} for the host namespace

This provides:
- Durable storage on any S3-compatible backend (AWS, MinIO, localstack)
- Strong read-after-write consistency (AWS S3 as of Dec 2020)
"""

import json
import os
from typing import List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..core.canonical import canonical_json_bytes
from ..core.errors import TransientStorageError
from ..core.ids import is_content_id
from .store import ContentStore, JsonObject, normalize_path

_MISSING_CODES = ("NoSuchKey", "404", "NotFound")


def _error_code(e: ClientError) -> str:
    return e.response.get("Error", {}).get("Code", "Unknown")


class S3ContentStore(ContentStore):
    """
    S3 implementation of ContentStore.

    Paginator: list_objects_v2 returns max 1000 keys per call, so list_paths()
    iterates pages.
    """

    def __init__(
        self,
        bucket: str,
        prefix: str = "sessionvault",
        endpoint_url: Optional[str] = None,
        region: str = "us-east-1",
    ) -> None:
        """
        Initialize S3 content store.

        Args:
            bucket: S3 bucket name
            prefix: Key prefix for all objects
            endpoint_url: S3 endpoint URL (for MinIO, localstack, etc.)
            region: AWS region (default: us-east-1)

        Raises:
            TransientStorageError: If the client cannot be created or the
                bucket is not accessible
        """
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.endpoint_url = endpoint_url
        self.region = region

        # Credentials from environment: AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY
        try:
            self.s3_client = boto3.client("s3", endpoint_url=endpoint_url, region_name=region)
        except (BotoCoreError, ValueError) as e:
            raise TransientStorageError(f"Failed to create S3 client: {e}") from e

        if os.getenv("SESSIONVAULT_S3_SKIP_BUCKET_CHECK", "").lower() != "true":
            try:
                self.s3_client.head_bucket(Bucket=bucket)
            except ClientError as e:
                raise TransientStorageError(
                    f"Bucket '{bucket}' not accessible (code: {_error_code(e)})"
                ) from e

    def _key(self, relative: str) -> str:
        return f"{self.prefix}/{relative}" if self.prefix else relative

    def _blob_key(self, cid: str) -> str:
        if not is_content_id(cid):
            raise ValueError(f"Invalid content identifier: {cid!r}")
        return self._key(f"blobs/{cid}.json")

    def _put(self, key: str, obj: JsonObject) -> None:
        try:
            self.s3_client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=canonical_json_bytes(obj),
                ContentType="application/json",
            )
        except (BotoCoreError, ClientError) as e:
            raise TransientStorageError(f"Failed to write s3://{self.bucket}/{key}: {e}") from e

    def _get(self, key: str) -> Optional[JsonObject]:
        try:
            response = self.s3_client.get_object(Bucket=self.bucket, Key=key)
            body = response["Body"].read().decode("utf-8")
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                return None
            raise TransientStorageError(f"Failed to read s3://{self.bucket}/{key}: {e}") from e
        except BotoCoreError as e:
            raise TransientStorageError(f"Failed to read s3://{self.bucket}/{key}: {e}") from e
        try:
            return json.loads(body)
        except json.JSONDecodeError as e:
            raise TransientStorageError(f"Corrupt JSON at s3://{self.bucket}/{key}: {e}") from e

    def _delete(self, key: str) -> None:
        try:
            self.s3_client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise TransientStorageError(f"Failed to delete s3://{self.bucket}/{key}: {e}") from e

    def _put_object(self, cid: str, obj: JsonObject) -> None:
        self._put(self._blob_key(cid), obj)

    def get(self, cid: str) -> Optional[JsonObject]:
        return self._get(self._blob_key(cid))

    def delete(self, cid: str) -> None:
        self._delete(self._blob_key(cid))

    def write_path(self, path: str, obj: JsonObject) -> None:
        self._put(self._key(normalize_path(path)), obj)

    def read_path(self, path: str) -> Optional[JsonObject]:
        return self._get(self._key(normalize_path(path)))

    def delete_path(self, path: str) -> None:
        self._delete(self._key(normalize_path(path)))

    def list_paths(self, prefix: str) -> List[str]:
        key_prefix = self._key(normalize_path(prefix)) + "/"
        strip = len(self.prefix) + 1 if self.prefix else 0
        paths = []
        try:
            paginator = self.s3_client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=key_prefix):
                for obj in page.get("Contents", []):
                    paths.append(obj["Key"][strip:])
        except (BotoCoreError, ClientError) as e:
            raise TransientStorageError(f"Failed to list s3://{self.bucket}/{key_prefix}: {e}") from e
        return sorted(paths)
