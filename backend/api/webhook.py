"""Webhook API: receives strategy alerts as JSON, form fields or plain text."""

import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool

from backend.api.deps import get_signal_processor
from backend.engine.signal_processor import SignalProcessor
from backend.errors import ValidationError
from backend.schemas.trade import SignalResponse, TradeRead
from backend.services.signal_parser import parse_alert

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhook", tags=["webhook"])


async def _read_alert(request: Request):
    content_type = request.headers.get("content-type", "").lower()
    if "application/x-www-form-urlencoded" in content_type or "multipart/form-data" in content_type:
        form = await request.form()
        return {key: value for key, value in form.items() if isinstance(value, str)}

    body = (await request.body()).decode("utf-8", errors="replace")
    if "application/json" in content_type:
        try:
            return json.loads(body)
        except json.JSONDecodeError:
            raise ValidationError("Request body is not valid JSON")
    return body


@router.post("", response_model=SignalResponse)
async def receive_signal(
    request: Request,
    processor: SignalProcessor = Depends(get_signal_processor),
):
    alert = await _read_alert(request)
    signal = parse_alert(alert)
    logger.info(
        f"[Webhook] Received signal: {signal.symbol} {signal.direction} {signal.kind} @ {signal.price}"
    )

    # Processing takes locks and blocks on the database
    result = await run_in_threadpool(processor.process, signal)
    logger.info(f"[Webhook] Processed as {result.action} for trade #{result.trade.id}")

    return SignalResponse(action=result.action, trade=TradeRead.model_validate(result.trade))
