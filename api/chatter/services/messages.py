"""
Message Service.

Direct messages between mutually-following users: sending (text, image or a
shared post), conversation history, the chat list and read/seen state.
"""

from __future__ import annotations

import logging

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, selectinload

from .. import models, schemas
from ..errors import Forbidden, InvalidArgument, NotFound
from ..notification_types import NotificationType
from ..utils.timestamps import utcnow
from ..websocket_manager import chat_room, connection_manager
from .notifications import NotificationService
from .persistence import commit_or_fail
from .relationships import RelationshipService

logger = logging.getLogger(__name__)

MESSAGE_SEEN_EVENT = "messageSeen"


def chat_event(recipient_id: int) -> str:
    """Event name a recipient's client listens on for incoming messages."""
    return f"chat-{recipient_id}"


class MessageService:
    """Service for direct messages."""

    @staticmethod
    def send(
        db: Session,
        sender_id: int,
        recipient_id: int,
        content: str | None = None,
        image_url: str | None = None,
        post_id: int | None = None,
    ) -> schemas.Message:
        """
        Send a direct message.

        The mutual-follow gate is checked before the payload, so a blocked
        sender gets Forbidden even for an empty message.

        Raises:
            NotFound: unknown sender, recipient or shared post
            Forbidden: the users do not follow each other
            InvalidArgument: content, image and post are all empty
        """
        MessageService._require_pair(db, sender_id, recipient_id)

        content = content or ""
        image_url = image_url or None
        if not content.strip() and not (image_url or "").strip() and post_id is None:
            raise InvalidArgument("Message must have content, an image or a shared post")

        if post_id is not None and db.get(models.Post, post_id) is None:
            raise NotFound("Post not found")

        message = models.Message(
            sender_id=sender_id,
            recipient_id=recipient_id,
            content=content,
            image_url=image_url,
            post_id=post_id,
            read=False,
            seen=False,
            created_at=utcnow(),
        )
        db.add(message)
        commit_or_fail(db, "send message")
        db.refresh(message)

        logger.info(f"User {sender_id} sent message {message.id} to user {recipient_id}")

        NotificationService.create(db, NotificationType.MESSAGE, sender_id, recipient_id)

        populated = MessageService.populate(message)
        connection_manager.push_to_user(
            recipient_id,
            chat_event(recipient_id),
            populated.model_dump(mode="json"),
        )
        return populated

    @staticmethod
    def send_post(
        db: Session,
        sender_id: int,
        recipient_id: int,
        post_id: int,
        content: str | None = None,
    ) -> schemas.Message:
        """Share ``post_id`` with ``recipient_id``, optionally with a caption."""
        return MessageService.send(
            db, sender_id, recipient_id, content=content, post_id=post_id
        )

    @staticmethod
    def history(db: Session, user_a_id: int, user_b_id: int) -> list[schemas.Message]:
        """Conversation between two users, oldest first."""
        MessageService._require_pair(db, user_a_id, user_b_id)

        messages = (
            db.query(models.Message)
            .options(
                selectinload(models.Message.sender),
                selectinload(models.Message.recipient),
                selectinload(models.Message.post).selectinload(models.Post.author),
            )
            .filter(MessageService._between(user_a_id, user_b_id))
            .order_by(models.Message.created_at.asc(), models.Message.id.asc())
            .all()
        )
        return [MessageService.populate(m) for m in messages]

    @staticmethod
    def mark_seen(db: Session, message_id: int, requester_id: int) -> schemas.Message:
        """
        Mark a message as seen by its recipient.

        Only the first transition notifies the sender; marking an already-seen
        message again is a no-op.

        Raises:
            NotFound: no such message
            Forbidden: requester is not the recipient
        """
        message = db.get(models.Message, message_id)
        if message is None:
            raise NotFound("Message not found")
        if message.recipient_id != requester_id:
            raise Forbidden("Only the recipient can mark a message as seen")

        # Conditional update so two concurrent requests cannot both flip it
        flipped = (
            db.query(models.Message)
            .filter(
                models.Message.id == message_id,
                models.Message.seen == False,  # noqa: E712
            )
            .update({models.Message.seen: True}, synchronize_session=False)
        )
        commit_or_fail(db, "mark message as seen")
        db.refresh(message)

        if flipped:
            logger.info(f"Message {message_id} seen by user {requester_id}")
            NotificationService.create(
                db, NotificationType.UNREAD_MESSAGE, message.recipient_id, message.sender_id
            )
            connection_manager.push(
                chat_room(message.sender_id, message.recipient_id),
                MESSAGE_SEEN_EVENT,
                {"message_id": message.id, "seen": True},
            )

        return MessageService.populate(message)

    @staticmethod
    def mark_all_read(db: Session, sender_id: int, recipient_id: int) -> int:
        """Flag every unread message from ``sender_id`` to ``recipient_id`` as read."""
        count = (
            db.query(models.Message)
            .filter(
                models.Message.sender_id == sender_id,
                models.Message.recipient_id == recipient_id,
                models.Message.read == False,  # noqa: E712
            )
            .update({models.Message.read: True}, synchronize_session=False)
        )
        commit_or_fail(db, "mark messages as read")
        return count

    @staticmethod
    def list_chats_for(db: Session, user_id: int) -> list[schemas.ChatSummary]:
        """One entry per conversation partner, most recently active first."""
        messages = (
            db.query(models.Message)
            .options(
                selectinload(models.Message.sender),
                selectinload(models.Message.recipient),
                selectinload(models.Message.post).selectinload(models.Post.author),
            )
            .filter(
                or_(
                    models.Message.sender_id == user_id,
                    models.Message.recipient_id == user_id,
                )
            )
            .order_by(models.Message.created_at.desc(), models.Message.id.desc())
            .all()
        )

        chats: dict[int, dict] = {}
        for message in messages:
            outgoing = message.sender_id == user_id
            peer_id = message.recipient_id if outgoing else message.sender_id
            chat = chats.get(peer_id)
            if chat is None:
                peer = message.recipient if outgoing else message.sender
                chat = chats[peer_id] = {
                    "user": schemas.UserSummary.model_validate(peer) if peer else None,
                    "last_message": MessageService.populate(message),
                    "unread_count": 0,
                }
            if not outgoing and not message.read:
                chat["unread_count"] += 1

        return [schemas.ChatSummary(**chat) for chat in chats.values()]

    @staticmethod
    def populate(message: models.Message) -> schemas.Message:
        return schemas.Message.model_validate(message)

    # =========================================================================
    # Private helper methods
    # =========================================================================

    @staticmethod
    def _require_pair(db: Session, user_a_id: int, user_b_id: int) -> None:
        for user_id in (user_a_id, user_b_id):
            if db.get(models.User, user_id) is None:
                raise NotFound("User not found")
        if not RelationshipService.can_exchange_messages(db, user_a_id, user_b_id):
            raise Forbidden("Users must follow each other to exchange messages")

    @staticmethod
    def _between(user_a_id: int, user_b_id: int):
        return or_(
            and_(
                models.Message.sender_id == user_a_id,
                models.Message.recipient_id == user_b_id,
            ),
            and_(
                models.Message.sender_id == user_b_id,
                models.Message.recipient_id == user_a_id,
            ),
        )
