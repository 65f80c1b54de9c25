import uuid
from typing import Dict, Optional, Tuple

import pytest
from bson import ObjectId
from mongomock_motor import AsyncMongoMockClient

from flownote.repositories.conversation_repository import ConversationRepository
from flownote.repositories.event_repository import EventRepository
from flownote.repositories.message_repository import MessageRepository
from flownote.repositories.print_repository import PrintRepository
from flownote.repositories.user_repository import UserRepository
from flownote.schemas.user import UserPublic
from flownote.services.chat_service import ChatService
from flownote.services.event_service import EventService
from flownote.services.print_service import PrintService
from flownote.services.user_service import UserService
from flownote.utils.blob_store import FileUpload, StoredBlob
from flownote.utils.dates import utcnow
from flownote.utils.exceptions import BlobStoreError, NotFoundError
from flownote.utils.realtime_bus import LocalBus


class InMemoryBlobStore:
    """Test double for GridFSBlobStore."""

    def __init__(self) -> None:
        self.blobs: Dict[str, Tuple[str, FileUpload]] = {}
        self.fail_after: Optional[int] = None
        self.fail_delete = False
        self.upload_calls = 0

    def url_for(self, blob_id: str) -> str:
        return f"http://testserver/files/{blob_id}"

    async def upload(self, path: str, upload: FileUpload) -> str:
        if self.fail_after is not None and self.upload_calls >= self.fail_after:
            raise BlobStoreError(f"Upload of {path} failed")
        self.upload_calls += 1
        blob_id = str(ObjectId())
        self.blobs[blob_id] = (path, upload)
        return blob_id

    async def download(self, blob_id: str) -> StoredBlob:
        if blob_id not in self.blobs:
            raise NotFoundError("file", blob_id)
        path, upload = self.blobs[blob_id]
        return StoredBlob(data=upload.data, content_type=upload.content_type, filename=upload.name)

    async def delete(self, blob_id: str) -> None:
        if self.fail_delete or blob_id not in self.blobs:
            raise BlobStoreError(f"Delete of {blob_id} failed")
        del self.blobs[blob_id]

    def paths(self):
        return sorted(path for path, _ in self.blobs.values())


@pytest.fixture
def db():
    # mongomock clients share storage, so every test gets its own database
    return AsyncMongoMockClient()[f"flownote_test_{uuid.uuid4().hex}"]


@pytest.fixture
def bus():
    return LocalBus()


@pytest.fixture
def blob_store():
    return InMemoryBlobStore()


@pytest.fixture
def chat_service(db, blob_store, bus):
    return ChatService(MessageRepository(db), ConversationRepository(db), UserRepository(db), blob_store, bus)


@pytest.fixture
def user_service(db):
    return UserService(UserRepository(db))


@pytest.fixture
def print_service(db, blob_store, bus):
    return PrintService(PrintRepository(db), blob_store, bus)


@pytest.fixture
def event_service(db, bus):
    return EventService(EventRepository(db), bus)


@pytest.fixture
def insert_user(db):
    async def _insert(user_id: str, name: str, role: str = "parent", school_id: Optional[str] = "school-1") -> UserPublic:
        now = utcnow()
        await db["users"].insert_one({
            "_id": user_id,
            "email": f"{user_id}@example.com",
            "hashed_password": "x",
            "name": name,
            "role": role,
            "school_id": school_id,
            "fcm_tokens": [],
            "created_at": now,
            "updated_at": now,
        })
        return UserPublic(id=user_id, email=f"{user_id}@example.com", name=name, role=role, school_id=school_id)
    return _insert


@pytest.fixture
async def alice(insert_user):
    return await insert_user("alice", "Alice", role="teacher")


@pytest.fixture
async def bob(insert_user):
    return await insert_user("bob", "Bob")
