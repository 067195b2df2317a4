"""File storage for booking completion evidence.

Two backends share the same validation:
- local disk (default), returning ``/uploads/<name>`` references
- S3 / MinIO via boto3, returning the object URL
"""

import logging
import os
import uuid
from io import BytesIO
from pathlib import Path

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from PIL import Image, UnidentifiedImageError

from src.domain.exceptions import InvalidFileError, StorageError

logger = logging.getLogger(__name__)


class FileStorage:
    """Validates uploads and hands the bytes to a concrete backend."""

    ALLOWED_IMAGE_TYPES = {
        "image/jpeg": "jpg",
        "image/png": "png",
        "image/webp": "webp",
        "image/gif": "gif",
    }
    MAX_IMAGE_SIZE = 10 * 1024 * 1024  # 10MB

    def __init__(self, max_bytes: int | None = None) -> None:
        self.max_bytes = max_bytes or self.MAX_IMAGE_SIZE

    def store(
        self,
        content: bytes,
        content_type: str,
        filename: str | None = None,
    ) -> str:
        """Persist an image and return a stable reference to it.

        Raises:
            InvalidFileError: empty, too large, wrong type or not an image.
            StorageError: the backend could not write the file.
        """
        extension = self._validate(content, content_type)
        name = f"{uuid.uuid4().hex}.{extension}"
        ref = self._write(name, content, content_type)
        logger.info(
            "Stored completion evidence. ref=%s size=%s original_name=%s",
            ref,
            len(content),
            filename,
        )
        return ref

    def discard(self, ref: str) -> None:
        """Remove a stored artifact. Best-effort."""
        try:
            self._remove(ref)
        except Exception:
            logger.exception("Failed to discard stored artifact. ref=%s", ref)

    def _validate(self, content: bytes, content_type: str) -> str:
        if not content:
            raise InvalidFileError("No image provided")

        if len(content) > self.max_bytes:
            raise InvalidFileError(
                f"Image exceeds maximum size of {self.max_bytes // 1024 // 1024}MB"
            )

        content_type = (content_type or "").lower()
        if content_type not in self.ALLOWED_IMAGE_TYPES:
            raise InvalidFileError(f"Unsupported file type: {content_type or 'unknown'}")

        try:
            with Image.open(BytesIO(content)) as image:
                detected = Image.MIME.get(image.format or "")
                image.verify()
        except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as exc:
            raise InvalidFileError("Uploaded file is not a valid image") from exc

        if detected != content_type:
            raise InvalidFileError(
                f"File content ({detected}) does not match declared type {content_type}"
            )

        return self.ALLOWED_IMAGE_TYPES[content_type]

    def _write(self, name: str, content: bytes, content_type: str) -> str:
        raise NotImplementedError

    def _remove(self, ref: str) -> None:
        raise NotImplementedError


class LocalFileStorage(FileStorage):
    """Writes uploads into a directory served under ``url_prefix``."""

    def __init__(
        self,
        upload_dir: str | Path,
        url_prefix: str = "/uploads",
        max_bytes: int | None = None,
    ) -> None:
        super().__init__(max_bytes=max_bytes)
        self.upload_dir = Path(upload_dir)
        self.url_prefix = url_prefix.rstrip("/")

    def _write(self, name: str, content: bytes, content_type: str) -> str:
        try:
            self.upload_dir.mkdir(parents=True, exist_ok=True)
            (self.upload_dir / name).write_bytes(content)
        except OSError as exc:
            raise StorageError("Failed to save the file") from exc
        return f"{self.url_prefix}/{name}"

    def _remove(self, ref: str) -> None:
        name = ref.rsplit("/", 1)[-1]
        (self.upload_dir / name).unlink(missing_ok=True)


class S3FileStorage(FileStorage):
    """S3/MinIO backend."""

    def __init__(
        self,
        bucket: str,
        region: str,
        endpoint_url: str | None = None,
        folder: str = "bookings/completion",
        max_bytes: int | None = None,
        client=None,
    ) -> None:
        super().__init__(max_bytes=max_bytes)
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        self.folder = folder
        self._client = client

    @property
    def client(self):
        """Lazy-load S3 client."""
        if self._client is None:
            config = Config(
                signature_version="s3v4",
                retries={"max_attempts": 3, "mode": "adaptive"},
            )
            self._client = boto3.client(
                "s3",
                region_name=self.region,
                endpoint_url=self.endpoint_url,
                config=config,
            )
        return self._client

    def _url_for(self, key: str) -> str:
        if self.endpoint_url:
            # MinIO in development
            return f"{self.endpoint_url}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def _write(self, name: str, content: bytes, content_type: str) -> str:
        key = f"{self.folder}/{name}"
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError("Failed to upload the file") from exc
        return self._url_for(key)

    def _remove(self, ref: str) -> None:
        key = f"{self.folder}/{ref.rsplit('/', 1)[-1]}"
        self.client.delete_object(Bucket=self.bucket, Key=key)


def build_file_storage() -> FileStorage:
    backend = os.getenv("STORAGE_BACKEND", "local").lower()
    max_bytes = int(os.getenv("MAX_UPLOAD_BYTES", str(FileStorage.MAX_IMAGE_SIZE)))

    if backend == "s3":
        return S3FileStorage(
            bucket=os.getenv("S3_BUCKET_NAME", "servicefinder-uploads"),
            region=os.getenv("AWS_REGION", "us-east-1"),
            endpoint_url=os.getenv("S3_ENDPOINT_URL") or None,
            max_bytes=max_bytes,
        )

    return LocalFileStorage(
        upload_dir=os.getenv("UPLOAD_DIR", "public/uploads"),
        url_prefix=os.getenv("UPLOAD_URL_PREFIX", "/uploads"),
        max_bytes=max_bytes,
    )
