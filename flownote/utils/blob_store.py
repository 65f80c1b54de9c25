import logging
from typing import NamedTuple, Optional

from bson import ObjectId
from bson.errors import InvalidId
from gridfs.errors import NoFile
from motor.motor_asyncio import AsyncIOMotorDatabase, AsyncIOMotorGridFSBucket
from pymongo.errors import PyMongoError

from flownote import config
from flownote.utils.exceptions import BlobStoreError, NotFoundError


logger = logging.getLogger(__name__)


class FileUpload(NamedTuple):
    name: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class StoredBlob(NamedTuple):
    data: bytes
    content_type: str
    filename: str


class GridFSBlobStore:

    def __init__(self, db: AsyncIOMotorDatabase, bucket_name: str = "blobs", base_url: Optional[str] = None) -> None:
        self._bucket = AsyncIOMotorGridFSBucket(db, bucket_name=bucket_name)
        self._base_url = (base_url or config.PUBLIC_BASE_URL).rstrip("/")

    def url_for(self, blob_id: str) -> str:
        return f"{self._base_url}/files/{blob_id}"

    async def upload(self, path: str, upload: FileUpload) -> str:
        try:
            file_id = await self._bucket.upload_from_stream(
                path,
                upload.data,
                metadata={"content_type": upload.content_type, "name": upload.name},
            )
        except PyMongoError as exc:
            raise BlobStoreError(f"Upload of {path} failed") from exc
        logger.debug("Stored blob %s at %s (%d bytes)", file_id, path, upload.size)
        return str(file_id)

    async def download(self, blob_id: str) -> StoredBlob:
        oid = _to_object_id(blob_id)
        try:
            grid_out = await self._bucket.open_download_stream(oid)
            data = await grid_out.read()
        except NoFile as exc:
            raise NotFoundError("file", blob_id) from exc
        except PyMongoError as exc:
            raise BlobStoreError(f"Download of {blob_id} failed") from exc
        metadata = grid_out.metadata or {}
        return StoredBlob(
            data=data,
            content_type=metadata.get("content_type") or "application/octet-stream",
            filename=metadata.get("name") or grid_out.filename.rsplit("/", 1)[-1],
        )

    async def delete(self, blob_id: str) -> None:
        oid = _to_object_id(blob_id)
        try:
            await self._bucket.delete(oid)
        except NoFile as exc:
            raise BlobStoreError(f"Blob {blob_id} does not exist") from exc
        except PyMongoError as exc:
            raise BlobStoreError(f"Delete of {blob_id} failed") from exc


def _to_object_id(blob_id: str) -> ObjectId:
    try:
        return ObjectId(blob_id)
    except (InvalidId, TypeError) as exc:
        raise NotFoundError("file", blob_id) from exc
