"""
License Image Storage
Uploads doctor license images to S3 and returns a public URL
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from config import settings
from app.core.error_handling import AppException, StorageUnavailable

logger = logging.getLogger(__name__)


class StorageService:
    """Blob store for uploaded images"""
    
    def __init__(self, s3_client=None):
        self.enabled = False
        self.bucket_name = settings.AWS_S3_BUCKET_NAME
        self.region = settings.AWS_REGION
        self.s3_client = s3_client
        
        if self.s3_client is not None:
            self.enabled = bool(self.bucket_name)
            return
        
        if not all([settings.AWS_ACCESS_KEY_ID, settings.AWS_SECRET_ACCESS_KEY, self.bucket_name]):
            logger.warning("AWS S3 not configured. Set AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY, and AWS_S3_BUCKET_NAME")
            return
        
        self.s3_client = boto3.client(
            's3',
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            region_name=self.region
        )
        self.enabled = True
        logger.info(f"AWS S3 storage initialized. Bucket: {self.bucket_name}, Region: {self.region}")
    
    def is_enabled(self) -> bool:
        return self.enabled
    
    def public_url(self, key: str) -> str:
        if settings.STORAGE_PUBLIC_BASE_URL:
            return f"{settings.STORAGE_PUBLIC_BASE_URL.rstrip('/')}/{key}"
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{key}"
    
    @staticmethod
    def license_key(user_id: int, filename: Optional[str]) -> str:
        """doctor-licenses/{user_id}-{timestamp}.{ext}"""
        extension = "bin"
        if filename and "." in filename:
            extension = filename.rsplit(".", 1)[-1].lower()
        timestamp = int(datetime.now(timezone.utc).timestamp() * 1000)
        return f"{settings.LICENSE_IMAGE_PREFIX}/{user_id}-{timestamp}.{extension}"
    
    async def upload(self, key: str, content: bytes, content_type: Optional[str] = None) -> str:
        """
        Upload a file by key. boto3 blocks, so the request runs in a worker thread
        
        Returns:
            Public URL of the stored object
        """
        if not self.enabled:
            raise StorageUnavailable()
        
        try:
            await asyncio.to_thread(
                self.s3_client.put_object,
                Bucket=self.bucket_name,
                Key=key,
                Body=content,
                ContentType=content_type or "application/octet-stream",
                ServerSideEncryption='AES256',
            )
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            error_message = e.response.get('Error', {}).get('Message', str(e))
            logger.error(f"S3 upload error ({error_code}): {error_message}")
            raise AppException("Failed to upload file", status_code=502, details={"code": error_code})
        except BotoCoreError as e:
            logger.error(f"S3 upload error: {e}")
            raise AppException("Failed to upload file", status_code=502)
        
        logger.info(f"Uploaded {len(content)} bytes to S3: {key}")
        return self.public_url(key)


storage_service: Optional[StorageService] = None


def get_storage_service() -> StorageService:
    global storage_service
    if storage_service is None:
        storage_service = StorageService()
    return storage_service
