"""
Asset storage for look images and videos uploaded as data URIs
Reference: https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/s3.html
"""
import asyncio
import base64
import binascii
import logging
import re
import uuid
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional, Tuple

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from app.core.config import settings
from app.core.exceptions import StoreException, ValidationException

logger = logging.getLogger(__name__)

DATA_URI_PATTERN = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<payload>.+)$", re.DOTALL)

EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "video/mp4": "mp4",
}


@lru_cache()
def get_storage_service() -> Optional['StorageService']:
    """
    Get a singleton StorageService instance.

    Returns None when S3 is not configured; data URIs are then stored inline.

    Reference: https://docs.python.org/3/library/functools.html#functools.lru_cache
    """
    if not settings.s3_enabled:
        logger.warning("S3 not configured - uploaded assets will be stored inline as data URIs")
        return None
    return StorageService()


def is_data_uri(value: str) -> bool:
    return value.startswith("data:")


def parse_data_uri(data_uri: str) -> Tuple[str, bytes]:
    """
    Split a base64 data URI into its content type and bytes.

    Raises:
        ValidationException: If the URI is malformed or the type is not supported
    """
    match = DATA_URI_PATTERN.match(data_uri)
    if not match:
        raise ValidationException("Asset must be a base64 data URI.")
    mime = match.group("mime").lower()
    if mime not in EXTENSIONS:
        raise ValidationException(f"Unsupported asset type: {mime}")
    try:
        content = base64.b64decode(match.group("payload"), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationException("Asset data is not valid base64.") from e
    if not content:
        raise ValidationException("Asset is empty.")
    return mime, content


class StorageService:
    """Uploads look assets to S3 and returns their public URLs"""

    def __init__(self, s3_client=None):
        """Initialize S3 client with credentials from settings"""
        config = Config(
            max_pool_connections=50,
            retries={
                'max_attempts': 3,
                'mode': 'standard'
            },
            connect_timeout=5,
            read_timeout=10
        )

        self.s3_client = s3_client or boto3.client(
            's3',
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            region_name=settings.AWS_REGION,
            config=config
        )

        self.bucket_name = settings.AWS_S3_BUCKET_NAME
        self.base_url = (settings.AWS_S3_BASE_URL or self._generate_base_url()).rstrip("/")

    def _generate_base_url(self) -> str:
        """Generate S3 base URL from bucket name and region"""
        return f"https://{self.bucket_name}.s3.{settings.AWS_REGION}.amazonaws.com"

    async def upload_data_uri(self, data_uri: str, folder: str = "looks") -> str:
        """
        Upload a base64 data URI to S3 and return the durable URL.

        Args:
            data_uri: data:<mime>;base64,<payload>
            folder: S3 key prefix

        Returns:
            Public URL of the uploaded object

        Raises:
            ValidationException: If the data URI is invalid
            StoreException: If the upload fails
        """
        mime, content = parse_data_uri(data_uri)

        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d")
        s3_key = f"{folder}/{timestamp}_{uuid.uuid4().hex[:8]}.{EXTENSIONS[mime]}"

        try:
            # put_object is synchronous; keep it off the event loop
            await asyncio.to_thread(
                self.s3_client.put_object,
                Bucket=self.bucket_name,
                Key=s3_key,
                Body=content,
                ContentType=mime,
            )
        except ClientError as e:
            logger.exception(
                "Couldn't put object '%s' to bucket '%s'.",
                s3_key,
                self.bucket_name
            )
            raise StoreException("Failed to upload asset.") from e

        logger.info(
            "Put object '%s' to bucket '%s' (%d bytes).",
            s3_key,
            self.bucket_name,
            len(content),
        )
        return f"{self.base_url}/{s3_key}"
