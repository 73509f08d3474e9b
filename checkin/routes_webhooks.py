# checkin/routes_webhooks.py
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from starlette.concurrency import run_in_threadpool

from checkin.deps import Services, get_services
from checkin.errors import CheckinError, ValidationError

log = logging.getLogger("checkin.webhooks")

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/email")
async def inbound_email(
    request: Request,
    background: BackgroundTasks,
    services: Services = Depends(get_services),
):
    """
    Provider inbound-email webhook. The signature covers the raw body, so it is
    read before any JSON parsing. Non-``email.received`` events are acknowledged
    and ignored; stored replies are handed to the workflow after the response.
    """
    raw = (await request.body()).decode("utf-8", errors="replace")
    try:
        result = await run_in_threadpool(services.webhooks.handle, raw, request.headers)
    except CheckinError as e:
        if e.status_code >= 500:
            log.error("Webhook failed: %s", e.message)
            raise ValidationError(f"Failed to process inbound email: {e.message}") from e
        raise
    except Exception as e:
        log.exception("Webhook error")
        raise ValidationError("Failed to process inbound email") from e

    if result is None:
        return {"received": True, "reply": None}

    background.add_task(services.webhooks.forward, result.submission)
    return {"received": True, "reply": result.reply.model_dump(mode="json")}
