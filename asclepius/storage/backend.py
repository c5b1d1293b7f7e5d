# asclepius/storage/backend.py
from __future__ import annotations

import io
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple, Type
from urllib.parse import unquote, urlparse

from starlette.concurrency import run_in_threadpool

from asclepius import settings
from asclepius.errors import TransportError

logger = logging.getLogger(__name__)

BACKEND = settings.STORAGE_BACKEND

# set by storage_startup(); tests swap in an in-memory store
blob_store: Optional["BlobStore"] = None


class BlobStore:
    """
    Path-addressed media storage.

    The SDKs are synchronous, so every call is pushed to the threadpool and
    SDK failures surface as TransportError.
    """

    container: str = ""
    _errors: Tuple[Type[BaseException], ...] = ()

    async def _call(self, action: str, fn: Callable, *args):
        try:
            return await run_in_threadpool(fn, *args)
        except self._errors as exc:
            logger.error("Blob store failure during %s: %s", action, exc)
            raise TransportError(f"Could not {action}. Please try again.") from exc

    async def upload(self, key: str, data: bytes, content_type: Optional[str] = None) -> str:
        await self._call("upload media", self._put, key, data, content_type)
        return key

    async def url_for(self, key: str) -> str:
        return await self._call("resolve media URL", self._url, key)

    async def delete(self, key: str) -> None:
        await self._call("delete media", self._remove, key)

    async def ensure_bucket(self) -> None:
        await self._call("prepare media storage", self._ensure)

    def key_for(self, path_or_url: str) -> str:
        """
        Storage key for either a bare key or a URL this store handed out
        (public, SAS or presigned).
        """
        if not path_or_url.startswith(("http://", "https://")):
            return path_or_url
        path = unquote(urlparse(path_or_url).path)
        marker = f"/{self.container}/"
        idx = path.find(marker)
        if idx < 0:
            raise ValueError(f"URL does not belong to container {self.container!r}")
        return path[idx + len(marker):]

    # subclasses implement these (blocking)
    def _put(self, key: str, data: bytes, content_type: Optional[str]) -> None:
        raise NotImplementedError

    def _url(self, key: str) -> str:
        raise NotImplementedError

    def _remove(self, key: str) -> None:
        raise NotImplementedError

    def _ensure(self) -> None:
        raise NotImplementedError


# -------------------------
# Azure Blob
# -------------------------
class AzureBlobStore(BlobStore):
    def __init__(self, conn_str: str, container: str):
        from azure.core.exceptions import AzureError
        from azure.storage.blob import BlobServiceClient

        if not conn_str:
            raise RuntimeError("AZURE_BLOB_CONN_STR not set")

        self._service = BlobServiceClient.from_connection_string(conn_str)
        self.container = container
        self._errors = (AzureError,)

    def _put(self, key, data, content_type):
        from azure.storage.blob import ContentSettings

        bc = self._service.get_blob_client(container=self.container, blob=key)
        kwargs = {}
        if content_type:
            kwargs["content_settings"] = ContentSettings(content_type=content_type)
        bc.upload_blob(data, overwrite=True, **kwargs)

    def _url(self, key):
        from azure.storage.blob import BlobSasPermissions, generate_blob_sas

        bc = self._service.get_blob_client(container=self.container, blob=key)
        account_key = getattr(self._service.credential, "account_key", None)
        if not account_key:
            # SAS-token or anonymous connection: the plain URL is all we can give
            return bc.url

        sas = generate_blob_sas(
            account_name=self._service.account_name,
            container_name=self.container,
            blob_name=key,
            account_key=account_key,
            permission=BlobSasPermissions(read=True),
            expiry=datetime.now(timezone.utc) + timedelta(hours=settings.MEDIA_URL_EXPIRE_HOURS),
        )
        return f"{bc.url}?{sas}"

    def _remove(self, key):
        bc = self._service.get_blob_client(container=self.container, blob=key)
        bc.delete_blob()

    def _ensure(self):
        from azure.core.exceptions import ResourceExistsError

        try:
            self._service.create_container(self.container)
        except ResourceExistsError:
            pass


# -------------------------
# S3 / MinIO
# -------------------------
class S3BlobStore(BlobStore):
    def __init__(self, endpoint: str, access_key: str, secret_key: str, bucket: str):
        from minio import Minio
        from minio.error import MinioException
        from urllib3.exceptions import HTTPError

        # Minio wants host:port (no scheme)
        host = endpoint.replace("http://", "").replace("https://", "").strip("/")

        self._s3 = Minio(
            endpoint=host,
            access_key=access_key,
            secret_key=secret_key,
            secure=endpoint.startswith("https"),
        )
        self.container = bucket
        self._errors = (MinioException, HTTPError)

    def _put(self, key, data, content_type):
        # put_object requires a file-like object with .read()
        self._s3.put_object(
            bucket_name=self.container,
            object_name=key,
            data=io.BytesIO(data),
            length=len(data),
            content_type=content_type or "application/octet-stream",
        )

    def _url(self, key):
        # presigned URLs are capped at 7 days
        hours = min(settings.MEDIA_URL_EXPIRE_HOURS, 168)
        return self._s3.presigned_get_object(
            bucket_name=self.container,
            object_name=key,
            expires=timedelta(hours=hours),
        )

    def _remove(self, key):
        self._s3.remove_object(bucket_name=self.container, object_name=key)

    def _ensure(self):
        if not self._s3.bucket_exists(bucket_name=self.container):
            self._s3.make_bucket(bucket_name=self.container)


def storage_startup() -> None:
    """
    Initialize the blob store client (Azure Blob or S3).
    IMPORTANT: call this from the FastAPI startup event, not on import.
    """
    global blob_store

    if BACKEND == "azure":
        blob_store = AzureBlobStore(settings.AZURE_BLOB_CONN_STR, settings.AZURE_CONTAINER_MEDIA)
    elif BACKEND == "s3":
        blob_store = S3BlobStore(
            settings.S3_ENDPOINT,
            settings.S3_ACCESS_KEY,
            settings.S3_SECRET_KEY,
            settings.S3_BUCKET_MEDIA,
        )
    else:
        raise RuntimeError(f"Unknown STORAGE_BACKEND: {BACKEND}")


async def ensure_buckets() -> None:
    """Create the media container/bucket if it is missing."""
    await get_blob_store().ensure_bucket()


def get_blob_store() -> BlobStore:
    if blob_store is None:
        raise RuntimeError("Blob store not initialized (call storage_startup)")
    return blob_store
