"""
AWS S3 storage driver implementation.

Works against AWS or any S3-compatible endpoint. boto3 is synchronous, so
every call runs in the default executor.
"""

import asyncio
from functools import partial
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from structlog import get_logger

from .base import BaseStorageDriver, StorageError, StorageObjectNotFound

logger = get_logger(__name__)

MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


class S3StorageDriver(BaseStorageDriver):
    """S3 storage driver."""

    name = "s3"

    def __init__(
        self,
        bucket_name: str,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        region_name: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        client=None,
    ):
        """
        Initialize S3 storage driver.

        Args:
            bucket_name: S3 bucket name
            aws_access_key_id: AWS access key (optional, can use IAM roles)
            aws_secret_access_key: AWS secret key (optional, can use IAM roles)
            region_name: AWS region
            endpoint_url: Custom S3 endpoint (for S3-compatible services)
            client: Pre-built boto3 client
        """
        self.bucket_name = bucket_name
        self.region_name = region_name
        self.endpoint_url = endpoint_url

        if client is None:
            session = boto3.Session(
                aws_access_key_id=aws_access_key_id,
                aws_secret_access_key=aws_secret_access_key,
                region_name=region_name,
            )
            client = session.client("s3", endpoint_url=endpoint_url)
        self.s3_client = client

    async def _call(self, method: str, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(getattr(self.s3_client, method), **kwargs))

    @staticmethod
    def _is_missing(error: ClientError) -> bool:
        return error.response.get("Error", {}).get("Code") in MISSING_CODES

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        try:
            await self._call(
                "put_object",
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("S3 upload failed", key=key, bucket=self.bucket_name, error=str(e))
            raise StorageError(f"Failed to upload {key}: {e}") from e

        logger.info("File uploaded to S3", key=key, bucket=self.bucket_name, size=len(data))

    async def get(self, key: str) -> bytes:
        try:
            response = await self._call("get_object", Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            if self._is_missing(e):
                raise StorageObjectNotFound(key) from e
            logger.error("S3 download failed", key=key, bucket=self.bucket_name, error=str(e))
            raise StorageError(f"Failed to download {key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to download {key}: {e}") from e

        body = response["Body"]
        try:
            return await asyncio.get_running_loop().run_in_executor(None, body.read)
        finally:
            body.close()

    async def delete(self, key: str) -> None:
        try:
            await self._call("delete_object", Bucket=self.bucket_name, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error("S3 delete failed", key=key, bucket=self.bucket_name, error=str(e))
            raise StorageError(f"Failed to delete {key}: {e}") from e

    async def exists(self, key: str) -> bool:
        try:
            await self._call("head_object", Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            if self._is_missing(e):
                return False
            raise StorageError(f"Failed to inspect {key}: {e}") from e
        return True

    def url(self, key: str) -> str:
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket_name}/{key}"
        return f"https://{self.bucket_name}.s3.{self.region_name}.amazonaws.com/{key}"
