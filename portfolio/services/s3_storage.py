"""S3-compatible storage (AWS S3 or Cloudflare R2)."""
import logging
from typing import List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from portfolio.core.errors import ConflictError, NotFoundError, StoreError
from portfolio.services.backing_store import BackingStore, StoredBlob, StoredObject

logger = logging.getLogger(__name__)

_CONFLICT_CODES = ("PreconditionFailed", "ConditionalRequestConflict", "412", "409")
_MISSING_CODES = ("NoSuchKey", "NotFound", "404")


def _error_code(e: ClientError) -> str:
    return str(e.response.get("Error", {}).get("Code", ""))


class S3StorageService(BackingStore):
    """Stores images and listing documents in one bucket."""

    name = "s3"

    def __init__(
        self,
        region: str,
        bucket: str,
        endpoint_url: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        root: str = "",
        timeout: float = 10.0,
    ):
        """
        Initialize S3 client.

        Args:
            region: AWS region ("auto" for R2)
            bucket: bucket name
            endpoint_url: custom endpoint for S3-compatible stores (R2)
            access_key: access key (optional; uses the default credential chain)
            secret_key: secret key (optional; uses the default credential chain)
            root: key prefix every logical path is placed under
            timeout: connect/read timeout in seconds
        """
        super().__init__(root)
        if not bucket:
            raise ValueError("S3 bucket is not configured")
        self.bucket = bucket
        self.region = region
        self.client = boto3.client(
            "s3",
            region_name=region or None,
            endpoint_url=endpoint_url or None,
            aws_access_key_id=access_key or None,
            aws_secret_access_key=secret_key or None,
            config=Config(
                connect_timeout=timeout,
                read_timeout=timeout,
                retries={"max_attempts": 3, "mode": "standard"},
            ),
        )
        logger.info(f"S3 storage initialized for bucket '{bucket}' (endpoint={endpoint_url or 'aws'})")

    def put(self, data, path, content_type="application/octet-stream", if_match=None, if_none_match=False):
        """
        Upload one object.

        Args:
            data: object contents
            path: logical key (e.g. "portfolio/nature/photo-1700000000000-a1b2c3.jpg")
            content_type: MIME type
            if_match: only overwrite when the current ETag equals this value
            if_none_match: only create when no object exists at the key

        Returns:
            StoredObject with the key relative to root and the new ETag
        """
        key = self.full_key(path)
        params = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": data,
            "ContentType": content_type,
        }
        if if_match is not None:
            params["IfMatch"] = if_match
        if if_none_match:
            params["IfNoneMatch"] = "*"
        try:
            resp = self.client.put_object(**params)
        except ClientError as e:
            if _error_code(e) in _CONFLICT_CODES:
                raise ConflictError(f"Conditional write rejected for {key}")
            logger.error(f"S3 upload failed for {key}: {e}")
            raise StoreError(f"S3 upload failed for {key}: {_error_code(e)}")
        except BotoCoreError as e:
            logger.error(f"S3 upload failed for {key}: {e}")
            raise StoreError(f"S3 unavailable: {e}")
        logger.info(f"Uploaded to S3: s3://{self.bucket}/{key}")
        return StoredObject(key=self.relative_key(key), size=len(data), etag=resp.get("ETag"))

    def get(self, path):
        key = self.full_key(path)
        try:
            resp = self.client.get_object(Bucket=self.bucket, Key=key)
            data = resp["Body"].read()
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                raise NotFoundError(f"Object not found: {key}")
            logger.error(f"S3 read failed for {key}: {e}")
            raise StoreError(f"S3 read failed for {key}: {_error_code(e)}")
        except BotoCoreError as e:
            raise StoreError(f"S3 unavailable: {e}")
        return StoredBlob(data=data, version=resp.get("ETag", ""))

    def delete(self, path):
        """Delete one object. S3 deletes are silent for missing keys, so head first."""
        key = self.full_key(path)
        if not self.exists(path):
            raise NotFoundError(f"Object not found: {key}")
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            logger.error(f"S3 delete failed for {key}: {e}")
            raise StoreError(f"S3 delete failed for {key}: {_error_code(e)}")
        except BotoCoreError as e:
            raise StoreError(f"S3 unavailable: {e}")
        logger.info(f"Deleted from S3: s3://{self.bucket}/{key}")

    def list(self, prefix: str) -> List[StoredObject]:
        full_prefix = self.full_key(prefix) + "/"
        out = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=full_prefix):
                for obj in page.get("Contents", []) or []:
                    out.append(
                        StoredObject(
                            key=self.relative_key(obj["Key"]),
                            size=int(obj.get("Size", 0) or 0),
                            etag=obj.get("ETag"),
                        )
                    )
        except ClientError as e:
            logger.error(f"S3 list failed for {full_prefix}: {e}")
            raise StoreError(f"S3 list failed for {full_prefix}: {_error_code(e)}")
        except BotoCoreError as e:
            raise StoreError(f"S3 unavailable: {e}")
        return sorted(out, key=lambda o: o.key)

    def exists(self, path: str) -> bool:
        """Check if the object exists."""
        key = self.full_key(path)
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                return False
            logger.error(f"Error checking S3 object existence: {e}")
            raise StoreError(f"S3 head failed for {key}: {_error_code(e)}")
        except BotoCoreError as e:
            raise StoreError(f"S3 unavailable: {e}")

    def close(self) -> None:
        self.client.close()
