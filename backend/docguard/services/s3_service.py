# docguard/services/s3_service.py

import re
import secrets
from datetime import datetime
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from docguard.core.config import settings
from docguard.core.logger import logger
from docguard.utils.exceptions import StorageError


def _safe_extension(filename: str) -> str:
    ext = (filename or "").rsplit(".", 1)[-1] if "." in (filename or "") else ""
    ext = re.sub(r"[^A-Za-z0-9]+", "", ext).lower()
    return ext[:10] or "bin"


def build_storage_path(user_id, filename: str) -> str:
    """
    Storage keys are namespaced per user: "{user_id}/{timestamp}-{random}.{ext}".
    """
    timestamp = datetime.utcnow().strftime("%Y%m%d%H%M%S%f")
    return f"{user_id}/{timestamp}-{secrets.token_hex(4)}.{_safe_extension(filename)}"


class S3Service:
    """
    Service layer for AWS S3 operations.
    """

    def __init__(self, bucket: Optional[str] = None, client=None):
        self.s3_client = client or boto3.client(
            's3',
            region_name=settings.AWS_REGION,
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None
        )
        self.bucket = bucket or settings.S3_BUCKET_NAME

    def upload(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        """
        Store a blob under `path`.
        """
        try:
            self.s3_client.put_object(
                Bucket=self.bucket,
                Key=path,
                Body=data,
                ContentType=content_type,
            )
            logger.info(f"Object uploaded: {path} ({len(data)} bytes)")

        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to upload object {path}: {str(e)}")
            raise StorageError(f"Upload failed: {str(e)}") from e

    def create_signed_url(self, path: str, ttl_seconds: int = 3600) -> str:
        """
        Generate pre-signed URL for GET operation (time-limited read).
        """
        try:
            url = self.s3_client.generate_presigned_url(
                'get_object',
                Params={
                    'Bucket': self.bucket,
                    'Key': path
                },
                ExpiresIn=ttl_seconds
            )

            logger.info(f"Generated signed URL for: {path}")
            return url

        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to generate signed URL: {str(e)}")
            raise StorageError("Failed to generate document URL") from e

    def download(self, path: str) -> bytes:
        """
        Read a blob back.
        """
        try:
            response = self.s3_client.get_object(Bucket=self.bucket, Key=path)
            return response['Body'].read()

        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to download object {path}: {str(e)}")
            raise StorageError("Failed to download document") from e

    def delete(self, path: str) -> None:
        """
        Delete an object from S3.
        """
        try:
            self.s3_client.delete_object(Bucket=self.bucket, Key=path)
            logger.info(f"Object deleted: {path}")

        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to delete object: {str(e)}")
            raise StorageError("Failed to delete document") from e

# Singleton instance
s3_service = S3Service()
