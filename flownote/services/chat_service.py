import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence

from bson import ObjectId

from flownote.models.conversation import LastMessageDocument
from flownote.models.message import AttachmentDocument, MessageDocument
from flownote.repositories.conversation_repository import ConversationRepository
from flownote.repositories.message_repository import MessageRepository
from flownote.repositories.user_repository import UserRepository
from flownote.schemas.chat import Conversation, ConversationSummary, Message
from flownote.schemas.user import UserPublic
from flownote.utils.blob_store import FileUpload
from flownote.utils.conversation_id import resolve_conversation_id
from flownote.utils.dates import utcnow
from flownote.utils.exceptions import BlobStoreError, ForbiddenError, NotFoundError
from flownote.utils.live_query import LiveQuery
from flownote.utils.realtime_bus import conversations_channel, get_bus, messages_channel, notify


logger = logging.getLogger(__name__)


class ChatService:

    def __init__(
        self,
        message_repo: MessageRepository,
        conversation_repo: ConversationRepository,
        user_repo: UserRepository,
        blob_store,
        bus=None,
    ) -> None:
        self._message_repo = message_repo
        self._conversation_repo = conversation_repo
        self._user_repo = user_repo
        self._blob_store = blob_store
        self._bus = bus

    async def _get_bus(self):
        if self._bus is None:
            self._bus = await get_bus()
        return self._bus

    async def get_or_create_conversation(self, participant_ids: Sequence[str]) -> str:
        participants = sorted(set(participant_ids))
        if len(participants) != 2:
            raise ValueError("A conversation needs exactly two distinct participants")
        conversation_id = resolve_conversation_id(participants)
        created = await self._conversation_repo.create_if_absent(conversation_id, participants)
        if created:
            logger.info("Created conversation %s", conversation_id)
            await notify(
                await self._get_bus(),
                [conversations_channel(p) for p in participants],
                "conversation_created",
                conversation_id=conversation_id,
            )
        return conversation_id

    async def get_conversation_for(self, conversation_id: str, user_id: str) -> Conversation:
        conversation = await self._conversation_repo.get(conversation_id)
        if conversation is None:
            raise NotFoundError("conversation", conversation_id)
        if user_id not in conversation.participants:
            raise ForbiddenError(f"User {user_id} is not a participant of {conversation_id}")
        return conversation

    async def send_message(
        self,
        conversation_id: str,
        sender_id: str,
        sender_name: str,
        content: str,
        attachments: Optional[Sequence[FileUpload]] = None,
    ) -> Message:
        attachments = list(attachments or [])
        if not (content or "").strip() and not attachments:
            raise ValueError("Message content cannot be empty")
        conversation = await self.get_conversation_for(conversation_id, sender_id)

        message_id = str(ObjectId())
        stored = await self._upload_attachments(conversation_id, message_id, attachments)

        now = utcnow()
        doc: MessageDocument = {
            "_id": message_id,
            "conversation_id": conversation_id,
            "sender_id": sender_id,
            "sender_name": sender_name,
            "content": content or "",
            "attachments": stored,
            "is_read": False,
            "read_by": [sender_id],
            "created_at": now,
            "updated_at": now,
        }
        message = await self._message_repo.insert(doc)

        last: LastMessageDocument = {
            "id": message_id,
            "sender_id": sender_id,
            "sender_name": sender_name,
            "content": content or "",
            "attachments": stored,
            "created_at": now,
        }
        # not atomic with the insert above; the summary may lag on failure
        await self._conversation_repo.update_last_message(conversation_id, last, now)

        await notify(
            await self._get_bus(),
            [messages_channel(conversation_id)] + [conversations_channel(p) for p in conversation.participants],
            "message_created",
            conversation_id=conversation_id,
            message_id=message_id,
        )
        return message

    async def _upload_attachments(
        self, conversation_id: str, message_id: str, attachments: List[FileUpload]
    ) -> List[AttachmentDocument]:
        stored: List[AttachmentDocument] = []
        try:
            for upload in attachments:
                blob_id = await self._blob_store.upload(f"messages/{conversation_id}/{message_id}/{upload.name}", upload)
                stored.append({
                    "id": blob_id,
                    "url": self._blob_store.url_for(blob_id),
                    "name": upload.name,
                    "type": upload.content_type,
                    "size": upload.size,
                })
        except BlobStoreError:
            logger.warning("Attachment upload failed for message %s, removing %d uploaded blob(s)", message_id, len(stored))
            for attachment in stored:
                try:
                    await self._blob_store.delete(attachment["id"])
                except BlobStoreError:
                    logger.exception("Could not remove orphaned blob %s", attachment["id"])
            raise
        return stored

    async def list_messages(self, conversation_id: str, viewer_id: str) -> List[Message]:
        await self.get_conversation_for(conversation_id, viewer_id)
        return await self._message_repo.list_for_conversation(conversation_id)

    async def mark_as_read(self, conversation_id: str, viewer_id: str) -> int:
        conversation = await self.get_conversation_for(conversation_id, viewer_id)
        touched = await self._message_repo.mark_read(conversation_id, viewer_id)
        if touched:
            await notify(
                await self._get_bus(),
                [messages_channel(conversation_id)] + [conversations_channel(p) for p in conversation.participants],
                "messages_read",
                conversation_id=conversation_id,
                reader_id=viewer_id,
            )
        return touched

    async def unread_count(self, conversation_id: str, viewer_id: str) -> int:
        return await self._message_repo.count_unread(conversation_id, viewer_id)

    async def list_conversations(self, viewer_id: str) -> List[ConversationSummary]:
        conversations = await self._conversation_repo.list_for_user(viewer_id)
        if not conversations:
            return []
        user_ids = list(dict.fromkeys(p for c in conversations for p in c.participants))
        profiles: Dict[str, UserPublic] = {u.id: u for u in await self._user_repo.get_users_by_ids(user_ids)}
        unread = await self._message_repo.count_unread_by_conversation([c.id for c in conversations], viewer_id)
        return [
            ConversationSummary(
                **c.model_dump(),
                participant_details=[profiles[p] for p in c.participants if p in profiles],
                unread_count=unread.get(c.id, 0),
            )
            for c in conversations
        ]

    @asynccontextmanager
    async def watch_conversations(
        self, viewer_id: str, callback: Callable[[List[ConversationSummary]], Awaitable[None]]
    ) -> AsyncIterator[LiveQuery]:
        bus = await self._get_bus()
        async with LiveQuery(
            bus, [conversations_channel(viewer_id)], lambda: self.list_conversations(viewer_id), callback
        ) as live:
            yield live

    @asynccontextmanager
    async def watch_messages(
        self, conversation_id: str, viewer_id: str, callback: Callable[[List[Message]], Awaitable[None]]
    ) -> AsyncIterator[LiveQuery]:
        await self.get_conversation_for(conversation_id, viewer_id)
        bus = await self._get_bus()
        async with LiveQuery(
            bus,
            [messages_channel(conversation_id)],
            lambda: self._message_repo.list_for_conversation(conversation_id),
            callback,
        ) as live:
            yield live
