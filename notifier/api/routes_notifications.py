"""Notification CRUD routes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from notifier.api.common import get_services, ok, parse_id, parse_int, read_json
from notifier.errors import ConflictError, NotFoundError
from notifier.services import Services
from notifier.storage.models import Notification, NotificationCreate, NotificationQuery

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications")


@router.get("")
async def list_notifications(services: Services = Depends(get_services)) -> JSONResponse:
    notifications = await services.db.find_many(NotificationQuery())
    return ok([n.to_dict() for n in notifications])


# Registered before /{notification_id} so "paginate" is not taken for an id.
@router.get("/paginate")
async def paginate_notifications(request: Request, services: Services = Depends(get_services)) -> JSONResponse:
    params = request.query_params
    search = (params.get("search") or "").strip() or None
    page = await services.db.paginate(
        page=parse_int(params.get("page"), 1),
        limit=parse_int(params.get("limit"), 10),
        search=search,
    )
    data = {
        "notifications": [n.to_dict() for n in page.notifications],
        "pagination": page.to_dict(),
    }
    if search:
        data["search_term"] = search
    return ok(data)


@router.get("/{notification_id}")
async def get_notification(notification_id: str, services: Services = Depends(get_services)) -> JSONResponse:
    """Fetch one notification, marking it read on first view."""
    nid = parse_id(notification_id)
    notification = await services.db.get_notification(nid)
    if notification is None:
        raise NotFoundError("Notification not found")

    if not notification.is_read:
        try:
            notification = await services.db.mark_read(nid, services.clock())
        except ConflictError:
            # Read concurrently by another request
            notification = await services.db.get_notification(nid) or notification
    return ok(notification.to_dict())


@router.post("")
async def create_notification(request: Request, services: Services = Depends(get_services)) -> JSONResponse:
    payload = NotificationCreate.from_payload(await read_json(request))
    created = await services.db.create_notification(
        Notification.from_create(payload, services.clock())
    )
    logger.info("Created notification %s from %s", created.id, created.email)
    return ok(created.to_dict(), status=201)


@router.put("/{notification_id}/read")
async def mark_notification_read(notification_id: str, services: Services = Depends(get_services)) -> JSONResponse:
    nid = parse_id(notification_id)
    notification = await services.db.mark_read(nid, services.clock())
    return ok({"message": "Notification marked as read", "notification": notification.to_dict()})
