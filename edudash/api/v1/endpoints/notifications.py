# edudash/api/v1/endpoints/notifications.py
import asyncio
import logging
from typing import List, Optional

from fastapi import (
    APIRouter,
    Depends,
    Query,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from edudash.core.config import settings
from edudash.core.errors import ValidationFailed
from edudash.core.security import get_current_user, require_roles, resolve_user
from edudash.db.session import get_db
from edudash.models.user import User
from edudash.schemas.notification import (
    CountResult,
    NotificationIds,
    NotificationPublic,
    NotificationSend,
)
from edudash.services import notification_service
from edudash.services.realtime import hub

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])
ws_router = APIRouter(tags=["notifications"])

get_current_sender = require_roles("teacher", "admin", "institution")


@router.get("", response_model=List[NotificationPublic])
def list_notifications(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    limit: int = Query(notification_service.DEFAULT_LIMIT, ge=1, le=200),
    unread_only: bool = False,
    type: Optional[str] = None,
):
    return notification_service.fetch_notifications(
        db, user_id=current_user.id, limit=limit, unread_only=unread_only, type=type
    )


@router.get("/unread-count", response_model=CountResult)
def unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return CountResult(count=notification_service.get_unread_count(db, user_id=current_user.id))


@router.post("/read-all", response_model=CountResult)
def mark_all_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return CountResult(count=notification_service.mark_all_as_read(db, user_id=current_user.id))


@router.post("/delete", response_model=CountResult)
def delete_many(
    payload: NotificationIds,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    deleted = notification_service.delete_notifications(
        db, ids=payload.ids, user_id=current_user.id
    )
    return CountResult(count=deleted)


@router.post("/send", response_model=CountResult, status_code=status.HTTP_201_CREATED)
def send(
    payload: NotificationSend,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_sender),
):
    """Send to ``user_ids``, everyone with ``role``, or everyone in ``institution_id``."""
    targets = [
        t for t in (payload.user_ids, payload.role, payload.institution_id) if t is not None
    ]
    if len(targets) != 1:
        raise ValidationFailed("Exactly one of user_ids, role or institution_id is required")

    content = dict(
        sender=current_user,
        title=payload.title,
        message=payload.message,
        type=payload.type,
        action_url=payload.action_url,
        metadata=payload.metadata,
    )
    if payload.user_ids is not None:
        count = notification_service.send_bulk_notifications(
            db, user_ids=payload.user_ids, **content
        )
    elif payload.role is not None:
        count = notification_service.send_role_notification(db, role=payload.role, **content)
    else:
        count = notification_service.send_institution_notification(
            db, institution_id=payload.institution_id, **content
        )
    return CountResult(count=count)


@router.delete("", response_model=CountResult)
def clear_all(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return CountResult(
        count=notification_service.clear_all_notifications(db, user_id=current_user.id)
    )


@router.post("/{notification_id}/read", response_model=NotificationPublic)
def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return notification_service.mark_as_read(
        db, notification_id=notification_id, user_id=current_user.id
    )


@router.delete("/{notification_id}")
def delete_one(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    notification_service.delete_notification(
        db, notification_id=notification_id, user_id=current_user.id
    )
    return {"success": True}


def _snapshot(db: Session, user_id: int) -> dict:
    # pick up rows changed by other sessions
    db.expire_all()
    items = notification_service.fetch_notifications(db, user_id=user_id)
    return {
        "type": "notifications",
        "notifications": [
            NotificationPublic.model_validate(n).model_dump(mode="json") for n in items
        ],
        "unreadCount": notification_service.get_unread_count(db, user_id=user_id),
    }


@ws_router.websocket("/ws/notifications")
async def notifications_socket(
    websocket: WebSocket,
    token: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """
    Realtime notification list.

    Sends the full list on connect and again after every change for the
    caller. Client messages are ignored.
    """
    raw_token = websocket.cookies.get(settings.SESSION_COOKIE_NAME) or token
    user = await run_in_threadpool(resolve_user, db, raw_token)
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    user_id = user.id

    await websocket.accept()
    subscription = hub.subscribe(user_id)
    receiver: Optional[asyncio.Task] = None
    changed: Optional[asyncio.Task] = None
    try:
        await websocket.send_json(await run_in_threadpool(_snapshot, db, user_id))
        while True:
            if receiver is None:
                receiver = asyncio.create_task(websocket.receive_text())
            if changed is None:
                changed = asyncio.create_task(subscription.wait())
            done, _ = await asyncio.wait(
                {receiver, changed}, return_when=asyncio.FIRST_COMPLETED
            )
            if receiver in done:
                # raises WebSocketDisconnect once the client leaves
                receiver.result()
                receiver = None
            if changed in done:
                changed = None
                await websocket.send_json(await run_in_threadpool(_snapshot, db, user_id))
    except WebSocketDisconnect:
        logger.debug("Notification socket closed for user %s", user_id)
    finally:
        for task in (receiver, changed):
            if task is not None and not task.done():
                task.cancel()
        hub.unsubscribe(subscription)
