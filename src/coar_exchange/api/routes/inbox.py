"""LDN inbox endpoints."""

import logging

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from coar_exchange.dependencies import Context, DBSession, RequireEnabled, TraceId
from coar_exchange.errors.exceptions import NotFoundError
from coar_exchange.errors.handlers import LD_JSON
from coar_exchange.models.responses import InboxContainer
from coar_exchange.services.receiver import NotificationReceiver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/inbox", tags=["Inbox"], dependencies=[RequireEnabled])

MAX_LIMIT = 1000


@router.post("", status_code=201)
async def receive_notification(request: Request, db: DBSession, ctx: Context, trace_id: TraceId):
    """Accept a COAR Notify notification (W3C LDN receiver)."""
    body = await request.body()
    source = request.client.host if request.client else None

    receiver = NotificationReceiver(db, ctx)
    result = await receiver.receive(body, source_address=source, trace_id=trace_id)
    await db.commit()

    if result.status == "created":
        return JSONResponse(
            status_code=201,
            headers={"Location": result.location},
            media_type=LD_JSON,
            content={"message": result.message, "id": result.location, "recordId": result.record_id},
        )
    return JSONResponse(
        status_code=200,
        media_type=LD_JSON,
        content={"message": result.message, "id": result.location},
    )


@router.get("")
async def list_notifications(
    request: Request,
    db: DBSession,
    ctx: Context,
    limit: int = Query(100, ge=0),
    offset: int = Query(0, ge=0),
):
    """LDP container of received notification ids, newest first."""
    receiver = NotificationReceiver(db, ctx)
    rows = await receiver.list_notifications(limit=min(limit, MAX_LIMIT), offset=offset)
    container = InboxContainer(
        id=f"{request.base_url}inbox/",
        contains=[row.notification_id for row in rows],
    )
    return JSONResponse(content=container.model_dump(by_alias=True), media_type=LD_JSON)


@router.get("/notifications/{notification_id:path}")
async def get_notification(notification_id: str, db: DBSession, ctx: Context):
    """Return a received notification's payload as it was delivered."""
    receiver = NotificationReceiver(db, ctx)
    record = await receiver.get_notification(notification_id)
    if record is None:
        raise NotFoundError("Notification", notification_id)
    return JSONResponse(content=record.payload, media_type=LD_JSON)
