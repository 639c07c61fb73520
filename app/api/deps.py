# app/api/deps.py
from typing import Optional

from fastapi import Depends, Header

from app.domain.errors import Forbidden, Unauthenticated
from app.domain.order_status import ActorType
from app.domain.schemas import Actor
from app.services.lock_service import LockService
from app.services.notification_service import NotificationService


def get_actor(
    x_actor_id: Optional[int] = Header(None),
    x_actor_type: Optional[str] = Header(None),
) -> Actor:
    """
    Identity is verified upstream (gateway / auth service); we only receive
    who is calling and do ownership checks ourselves.
    """
    if x_actor_id is None or not x_actor_type:
        raise Unauthenticated()

    try:
        actor_type = ActorType(x_actor_type)
    except ValueError:
        raise Unauthenticated("Unknown actor type")

    return Actor(id=x_actor_id, type=actor_type)


def require_user(actor: Actor = Depends(get_actor)) -> Actor:
    if actor.type != ActorType.USER:
        raise Forbidden("Only users can access this endpoint")
    return actor


def require_pharmacy(actor: Actor = Depends(get_actor)) -> Actor:
    if actor.type != ActorType.PHARMACY:
        raise Forbidden("Only pharmacies can access this endpoint")
    return actor


def get_lock_service() -> LockService:
    return LockService()


def get_notification_service() -> NotificationService:
    return NotificationService()
