"""
Image storage for post attachments.
Saves uploads to the local image directory and, when a bucket is configured,
pushes them on to AWS S3.
"""

import os
import io
import uuid
import asyncio
import logging
from datetime import datetime, timezone
from functools import wraps
from typing import Optional

import aiofiles
import boto3
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import UploadFile
from PIL import Image

from .errors import ValidationError, ImageUploadError

logger = logging.getLogger(__name__)

IMAGE_DIR = os.getenv('IMAGE_DIR', 'images')
# Support both AWS_S3_BUCKET (preferred) and legacy AWS_S3_BUCKET_NAME
S3_BUCKET = os.getenv('AWS_S3_BUCKET') or os.getenv('AWS_S3_BUCKET_NAME')
S3_REGION = os.getenv('AWS_S3_REGION') or os.getenv('AWS_REGION', 'us-east-1')
UPLOAD_STRICT = os.getenv('IMAGE_UPLOAD_STRICT', '').lower() in ('1', 'true', 'yes')

MAX_FILE_SIZE = 5 * 1024 * 1024  # 5MB
ALLOWED_EXTENSIONS = {'.png', '.jpg', '.jpeg'}
CONTENT_TYPES = {'.png': 'image/png', '.jpg': 'image/jpeg', '.jpeg': 'image/jpeg'}

def async_wrapper(func):
    """Wrapper to make sync boto3 calls async"""
    @wraps(func)
    async def wrapper(*args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: func(*args, **kwargs))
    return wrapper

class ImageStorage:
    """Stores post images locally and optionally on S3"""

    def __init__(self, upload_dir: str = IMAGE_DIR, bucket: Optional[str] = S3_BUCKET,
                 region: str = S3_REGION, strict: bool = UPLOAD_STRICT):
        self.upload_dir = upload_dir
        self.bucket = bucket
        self.region = region
        self.strict = strict
        self._s3 = None

    @property
    def s3_client(self):
        if self._s3 is None:
            self._s3 = boto3.client('s3', region_name=self.region)
        return self._s3

    @staticmethod
    def generate_filename(original_filename: str) -> str:
        stamp = datetime.now(timezone.utc).strftime('%Y%m%dT%H%M%S%f')
        base = os.path.basename(original_filename or 'image').replace(' ', '_')
        return f"{stamp}-{uuid.uuid4().hex[:8]}-{base}"

    def get_file_path(self, filename: str) -> str:
        return os.path.join(self.upload_dir, filename)

    @staticmethod
    def get_public_path(filename: str) -> str:
        return f"/images/{filename}"

    def get_s3_url(self, key: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    async def read_image(self, file: UploadFile) -> bytes:
        """Read an upload and make sure it is a png/jpeg image"""
        file_ext = os.path.splitext(file.filename or '')[1].lower()
        if file_ext not in ALLOWED_EXTENSIONS:
            raise ValidationError('Invalid image file.', [
                {'field': 'image', 'message': f"Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"}
            ])

        content = await file.read()
        if len(content) > MAX_FILE_SIZE:
            raise ValidationError('Invalid image file.', [{'field': 'image', 'message': 'File too large. Max size is 5MB'}])

        try:
            with Image.open(io.BytesIO(content)) as img:
                img.verify()
        except Exception:
            raise ValidationError('Invalid image file.', [{'field': 'image', 'message': 'Could not read image data'}])
        return content

    async def save_local(self, filename: str, content: bytes) -> str:
        os.makedirs(self.upload_dir, exist_ok=True)
        file_path = self.get_file_path(filename)
        async with aiofiles.open(file_path, 'wb') as f:
            await f.write(content)
        return file_path

    @async_wrapper
    def _upload_to_s3(self, content: bytes, key: str, content_type: str) -> None:
        self.s3_client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=content,
            ContentType=content_type,
            CacheControl='max-age=31536000',
        )

    async def store(self, file: UploadFile) -> str:
        """Persist an uploaded image and return the URL the post should reference.

        Remote upload failures are logged and the local path is used instead,
        unless the storage is strict, in which case ImageUploadError is raised.
        """
        content = await self.read_image(file)
        filename = self.generate_filename(file.filename)
        file_path = await self.save_local(filename, content)
        local_url = self.get_public_path(filename)

        if not self.bucket:
            return local_url

        key = f"posts/{filename}"
        ext = os.path.splitext(filename)[1].lower()
        try:
            await self._upload_to_s3(content, key, CONTENT_TYPES.get(ext, 'application/octet-stream'))
        except (BotoCoreError, ClientError, OSError) as e:
            if self.strict:
                logger.error(f'image upload failed for {filename}: {e}')
                self._remove_local(file_path)
                raise ImageUploadError('Image upload failed.')
            logger.warning(f'image upload failed for {filename}, keeping local copy: {e}')
            return local_url
        return self.get_s3_url(key)

    async def delete(self, image_url: str) -> bool:
        """Remove a stored image; never raises"""
        if not image_url:
            return False
        filename = image_url.split('/')[-1]
        removed = self._remove_local(self.get_file_path(filename))
        if self.bucket and image_url.startswith(f"https://{self.bucket}.s3."):
            try:
                await self._delete_from_s3(f"posts/{filename}")
                removed = True
            except (BotoCoreError, ClientError) as e:
                logger.warning(f'could not delete s3 object for {filename}: {e}')
        return removed

    @async_wrapper
    def _delete_from_s3(self, key: str) -> None:
        self.s3_client.delete_object(Bucket=self.bucket, Key=key)

    def _remove_local(self, file_path: str) -> bool:
        if not os.path.exists(file_path):
            return False
        try:
            os.remove(file_path)
            return True
        except OSError as e:
            logger.warning(f'could not remove {file_path}: {e}')
            return False
