import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, List, Optional

from bson import ObjectId

from flownote.models.prints import PrintDocument
from flownote.repositories.print_repository import PrintRepository
from flownote.schemas.prints import Print, PrintUpdate
from flownote.schemas.user import UserPublic
from flownote.utils.blob_store import FileUpload
from flownote.utils.dates import utcnow
from flownote.utils.exceptions import BlobStoreError, ForbiddenError, NotFoundError
from flownote.utils.live_query import LiveQuery
from flownote.utils.realtime_bus import get_bus, notify, prints_channel


logger = logging.getLogger(__name__)

PUBLISHER_ROLES = ("teacher", "admin")
SEARCH_WINDOW = 100


def _normalize_category(category: Optional[str]) -> Optional[str]:
    if not category or category == "all":
        return None
    return category


class PrintService:

    def __init__(self, print_repo: PrintRepository, blob_store, bus=None) -> None:
        self._print_repo = print_repo
        self._blob_store = blob_store
        self._bus = bus

    async def _get_bus(self):
        if self._bus is None:
            self._bus = await get_bus()
        return self._bus

    async def _changed(self, school_id: str, change: str, print_id: str) -> None:
        await notify(await self._get_bus(), [prints_channel(school_id)], change, print_id=print_id)

    async def upload_print(
        self,
        upload: FileUpload,
        title: str,
        description: Optional[str],
        category: str,
        uploader: UserPublic,
    ) -> Print:
        title = (title or "").strip()
        category = (category or "").strip()
        if not title:
            raise ValueError("Title is required")
        if not category:
            raise ValueError("Category is required")
        if not upload.data:
            raise ValueError("File is empty")
        if uploader.role not in PUBLISHER_ROLES:
            raise ForbiddenError("Only teachers can upload prints")
        if not uploader.school_id:
            raise ValueError("Uploader is not attached to a school")

        print_id = str(ObjectId())
        file_id = await self._blob_store.upload(f"prints/{uploader.school_id}/{print_id}/{upload.name}", upload)
        now = utcnow()
        doc: PrintDocument = {
            "_id": print_id,
            "title": title,
            "description": description,
            "file_id": file_id,
            "file_url": self._blob_store.url_for(file_id),
            "file_name": upload.name,
            "category": category,
            "school_id": uploader.school_id,
            "uploaded_by": uploader.id,
            "created_at": now,
            "updated_at": now,
        }
        created = await self._print_repo.insert(doc)
        await self._changed(created.school_id, "print_created", print_id)
        return created

    async def get_print(self, print_id: str) -> Print:
        found = await self._print_repo.get(print_id)
        if found is None:
            raise NotFoundError("print", print_id)
        return found

    async def get_prints(self, school_id: str, category: Optional[str] = None, limit: int = 50) -> List[Print]:
        return await self._print_repo.list_for_school(school_id, _normalize_category(category), limit)

    async def get_recent_prints(self, school_id: str, count: int = 5) -> List[Print]:
        return await self._print_repo.list_for_school(school_id, limit=count)

    async def get_categories(self, school_id: str) -> List[str]:
        return await self._print_repo.categories(school_id)

    async def search_prints(self, school_id: str, term: str, category: Optional[str] = None) -> List[Print]:
        # no full-text index; filter the latest window in memory
        prints = await self.get_prints(school_id, category, SEARCH_WINDOW)
        term = (term or "").strip().lower()
        if not term:
            return prints
        return [
            p for p in prints
            if term in p.title.lower() or (p.description and term in p.description.lower())
        ]

    async def _owned(self, print_id: str, editor_id: str) -> Print:
        found = await self.get_print(print_id)
        if found.uploaded_by != editor_id:
            raise ForbiddenError("Only the uploader can change this print")
        return found

    async def update_print(self, print_id: str, editor_id: str, updates: PrintUpdate) -> Print:
        existing = await self._owned(print_id, editor_id)
        updated = await self._print_repo.update_fields(print_id, updates.model_dump(exclude_unset=True, exclude_none=True))
        if updated is None:
            raise NotFoundError("print", print_id)
        await self._changed(existing.school_id, "print_updated", print_id)
        return updated

    async def delete_print(self, print_id: str, editor_id: str) -> None:
        existing = await self._owned(print_id, editor_id)
        try:
            await self._blob_store.delete(existing.file_id)
        except BlobStoreError:
            # an orphaned blob is a cleanup problem; the print still goes away
            logger.exception("Could not delete file %s of print %s", existing.file_id, print_id)
        await self._print_repo.delete(print_id)
        await self._changed(existing.school_id, "print_deleted", print_id)

    @asynccontextmanager
    async def watch_prints(
        self,
        school_id: str,
        callback: Callable[[List[Print]], Awaitable[None]],
        category: Optional[str] = None,
        limit: int = 50,
    ) -> AsyncIterator[LiveQuery]:
        bus = await self._get_bus()
        async with LiveQuery(
            bus, [prints_channel(school_id)], lambda: self.get_prints(school_id, category, limit), callback
        ) as live:
            yield live
