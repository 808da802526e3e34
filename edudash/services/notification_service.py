# edudash/services/notification_service.py
import logging
from typing import Any, Iterable, List, Optional

from sqlalchemy.orm import Session

from edudash.core.errors import NotFound, ValidationFailed
from edudash.core.validation import is_valid_role, sanitize_text
from edudash.models.notification import Notification, NOTIFICATION_TYPES
from edudash.models.user import User
from edudash.services.realtime import publish_change

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50


def _clean_content(title: str, message: str, type: str) -> tuple[str, str]:
    if type not in NOTIFICATION_TYPES:
        raise ValidationFailed(
            f"Invalid notification type. Must be one of: {', '.join(NOTIFICATION_TYPES)}"
        )
    clean_title = sanitize_text(title, max_length=200)
    clean_message = sanitize_text(message, max_length=2000)
    if not clean_title:
        raise ValidationFailed("Notification title is required")
    if not clean_message:
        raise ValidationFailed("Notification message is required")
    return clean_title, clean_message


def _build(
    *,
    user_id: int,
    title: str,
    message: str,
    type: str,
    sender: Optional[User],
    action_url: Optional[str],
    metadata: Optional[dict[str, Any]],
) -> Notification:
    return Notification(
        user_id=user_id,
        sender_id=sender.id if sender else None,
        sender_name=sender.display_name if sender else None,
        sender_role=sender.role if sender else None,
        type=type,
        title=title,
        message=message,
        read=False,
        action_url=action_url,
        extra=metadata,
    )


def create_notification(
    db: Session,
    *,
    user_id: int,
    title: str,
    message: str,
    type: str = "info",
    sender: Optional[User] = None,
    action_url: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
    commit: bool = True,
) -> Notification:
    """
    Insert one notification row.

    With ``commit=False`` the row joins the caller's transaction and the
    caller is responsible for ``publish_change`` after committing.
    """
    title, message = _clean_content(title, message, type)
    notification = _build(
        user_id=user_id,
        title=title,
        message=message,
        type=type,
        sender=sender,
        action_url=action_url,
        metadata=metadata,
    )
    db.add(notification)
    if commit:
        db.commit()
        db.refresh(notification)
        logger.info("Notification %s created for user %s", notification.id, user_id)
        publish_change(user_id)
    return notification


def send_notification_to_user(
    db: Session,
    *,
    user_id: int,
    sender: Optional[User],
    title: str,
    message: str,
    type: str = "info",
    action_url: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> Notification:
    if db.get(User, user_id) is None:
        raise NotFound(f"User {user_id} not found")
    return create_notification(
        db,
        user_id=user_id,
        sender=sender,
        title=title,
        message=message,
        type=type,
        action_url=action_url,
        metadata=metadata,
    )


def send_bulk_notifications(
    db: Session,
    *,
    user_ids: Iterable[int],
    sender: Optional[User],
    title: str,
    message: str,
    type: str = "info",
    action_url: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> int:
    """Send the same notification to many users in one transaction.

    Unknown user ids are skipped. Returns the number of rows created.
    """
    title, message = _clean_content(title, message, type)
    wanted = list(dict.fromkeys(user_ids))
    if not wanted:
        return 0

    existing = {
        row.id for row in db.query(User.id).filter(User.id.in_(wanted)).all()
    }
    recipients = [uid for uid in wanted if uid in existing]
    for uid in recipients:
        db.add(
            _build(
                user_id=uid,
                title=title,
                message=message,
                type=type,
                sender=sender,
                action_url=action_url,
                metadata=metadata,
            )
        )
    db.commit()

    for uid in recipients:
        publish_change(uid)
    logger.info("Bulk notification sent to %d users", len(recipients))
    return len(recipients)


def send_role_notification(
    db: Session,
    *,
    role: str,
    sender: Optional[User],
    title: str,
    message: str,
    type: str = "info",
    action_url: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> int:
    if not is_valid_role(role):
        raise ValidationFailed("Invalid role")
    user_ids = [row.id for row in db.query(User.id).filter(User.role == role).all()]
    return send_bulk_notifications(
        db,
        user_ids=user_ids,
        sender=sender,
        title=title,
        message=message,
        type=type,
        action_url=action_url,
        metadata=metadata,
    )


def send_institution_notification(
    db: Session,
    *,
    institution_id: str,
    sender: Optional[User],
    title: str,
    message: str,
    type: str = "info",
    action_url: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> int:
    user_ids = [
        row.id
        for row in db.query(User.id).filter(User.institution_id == institution_id).all()
    ]
    return send_bulk_notifications(
        db,
        user_ids=user_ids,
        sender=sender,
        title=title,
        message=message,
        type=type,
        action_url=action_url,
        metadata=metadata,
    )


def fetch_notifications(
    db: Session,
    *,
    user_id: int,
    limit: int = DEFAULT_LIMIT,
    unread_only: bool = False,
    type: Optional[str] = None,
) -> List[Notification]:
    """Newest first."""
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.read.is_(False))
    if type is not None:
        query = query.filter(Notification.type == type)
    return (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .all()
    )


def get_unread_count(db: Session, *, user_id: int) -> int:
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.read.is_(False))
        .count()
    )


def get_notification_for_user(
    db: Session, *, notification_id: int, user_id: int
) -> Notification:
    notification = db.get(Notification, notification_id)
    if notification is None or notification.user_id != user_id:
        raise NotFound("Notification not found")
    return notification


def mark_as_read(db: Session, *, notification_id: int, user_id: int) -> Notification:
    notification = get_notification_for_user(
        db, notification_id=notification_id, user_id=user_id
    )
    if not notification.read:
        notification.read = True
        db.add(notification)
        db.commit()
        db.refresh(notification)
        publish_change(user_id)
    return notification


def mark_all_as_read(db: Session, *, user_id: int) -> int:
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.read.is_(False))
        .update({Notification.read: True}, synchronize_session=False)
    )
    db.commit()
    if updated:
        publish_change(user_id)
    return updated


def delete_notification(db: Session, *, notification_id: int, user_id: int) -> None:
    notification = get_notification_for_user(
        db, notification_id=notification_id, user_id=user_id
    )
    db.delete(notification)
    db.commit()
    publish_change(user_id)


def delete_notifications(db: Session, *, ids: Iterable[int], user_id: int) -> int:
    ids = list(ids)
    if not ids:
        return 0
    deleted = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.id.in_(ids))
        .delete(synchronize_session=False)
    )
    db.commit()
    if deleted:
        publish_change(user_id)
    return deleted


def clear_all_notifications(db: Session, *, user_id: int) -> int:
    deleted = (
        db.query(Notification)
        .filter(Notification.user_id == user_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    if deleted:
        publish_change(user_id)
    return deleted
