"""AI routes: free generation, notification drafting, summaries and on-demand digests."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from notifier.api.common import fail, get_services, ok, parse_bool, parse_number, read_json
from notifier.errors import ValidationError
from notifier.llm.completion import ParsedReply, parse_json_reply, validate_messages
from notifier.periods import DigestPeriod
from notifier.services import Services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai")

NOTIFICATION_TYPES = ("email", "sms", "push")
SUMMARY_BODY_CHARS = 200


@router.post("/generate")
async def generate(request: Request, services: Services = Depends(get_services)) -> JSONResponse:
    payload = await read_json(request)
    messages = validate_messages(payload.get("messages"))
    completion = await services.completion.complete(
        messages,
        max_tokens=parse_number(payload.get("max_tokens"), "max_tokens", integer=True),
        temperature=parse_number(payload.get("temperature"), "temperature"),
    )
    data = completion.to_dict()
    data["response"] = completion.text or "Response not available"
    return ok(data)


@router.post("/generate-notification")
async def generate_notification(request: Request, services: Services = Depends(get_services)) -> JSONResponse:
    payload = await read_json(request)
    context = payload.get("context")
    if not isinstance(context, str) or not context.strip():
        raise ValidationError("Context is required to generate a notification")

    kind = payload.get("type") or "email"
    if kind not in NOTIFICATION_TYPES:
        raise ValidationError(f"Invalid notification type {kind!r}; expected one of: {', '.join(NOTIFICATION_TYPES)}")
    tone = payload.get("tone") or "friendly"
    language = payload.get("language") or "pt-BR"

    system = (
        f"You are an assistant that writes professional {kind} notifications.\n\n"
        "Guidelines:\n"
        f"- Tone: {tone}\n"
        f"- Language: {language}\n"
        f"- Type: {kind}\n"
        "- Be concise and clear\n"
        "- For email: include a subject and a body\n"
        "- For SMS: at most 160 characters\n"
        "- For push: at most 50 characters in the title and 100 in the body\n\n"
        "Return only the notification content as JSON:\n"
        '{"subject": "subject here (for email)", "body": "message body here"}'
    )
    completion = await services.completion.complete(
        [
            {"role": "system", "content": system},
            {"role": "user", "content": f"Context: {context}"},
        ],
        max_tokens=500,
        temperature=0.3,
    )

    reply = parse_json_reply(completion.text)
    if isinstance(reply, ParsedReply):
        return ok(reply.data)
    logger.info("Notification draft was not JSON; returning raw text as body")
    return ok(reply.as_notification(kind))


@router.post("/summarize-notifications")
async def summarize_notifications(request: Request, services: Services = Depends(get_services)) -> JSONResponse:
    payload = await read_json(request)
    notifications = payload.get("notifications")
    if not isinstance(notifications, list) or not notifications:
        raise ValidationError("At least one notification is required to summarize")
    timeframe = payload.get("timeframe") or "today"

    system = (
        "You are an assistant that writes executive summaries of notifications.\n\n"
        "Analyze the notifications provided and write an executive summary including:\n"
        "1. Total number of notifications\n"
        "2. Main senders\n"
        "3. Most common subjects\n"
        "4. Read rate\n"
        "5. Important trends\n"
        "6. Recommended actions\n\n"
        "Be concise and focus on insights useful for management."
    )
    user = (
        f"Summarize notifications for the period: {timeframe}\n\n"
        f"Notification data:\n{json.dumps(_summary_rows(notifications), indent=2, ensure_ascii=False)}"
    )
    completion = await services.completion.complete(
        [{"role": "system", "content": system}, {"role": "user", "content": user}],
        max_tokens=800,
        temperature=0.5,
    )
    return ok({
        "summary": completion.text or "Could not generate a summary",
        "timeframe": timeframe,
        "total_notifications": len(notifications),
    })


@router.post("/process-unread")
async def process_unread(request: Request, services: Services = Depends(get_services)) -> JSONResponse:
    """Generate a digest and mark its urgent notifications read (unless ``mark_as_read`` is false)."""
    payload = await read_json_or_empty(request)
    period = DigestPeriod.parse(payload.get("period") or DigestPeriod.DAILY)
    mark = parse_bool(payload.get("mark_as_read"), True)
    return await _digest_response(services, period, mark)


@router.post("/analyze-unread")
async def analyze_unread(request: Request, services: Services = Depends(get_services)) -> JSONResponse:
    """Same digest as process-unread, without changing any notification."""
    payload = await read_json_or_empty(request)
    period = DigestPeriod.parse(payload.get("period") or DigestPeriod.DAILY)
    return await _digest_response(services, period, False)


@router.get("/daily-digest")
async def daily_digest(request: Request, services: Services = Depends(get_services)) -> JSONResponse:
    params = request.query_params
    period = DigestPeriod.parse(params.get("period") or DigestPeriod.DAILY)
    mark = parse_bool(params.get("mark_as_read"), False)
    return await _digest_response(services, period, mark)


@router.get("/models")
async def list_models(services: Services = Depends(get_services)) -> JSONResponse:
    return ok([dict(m) for m in services.config.llm.models])


async def read_json_or_empty(request: Request) -> Dict[str, Any]:
    if not await request.body():
        return {}
    return await read_json(request)


async def _digest_response(services: Services, period: DigestPeriod, mark: bool) -> JSONResponse:
    outcome = await services.engine.generate_digest(period, mark_urgent_as_read=mark)
    if not outcome.success:
        return fail(outcome.error or "Failed to generate digest", 500)
    return ok(outcome.result.to_dict())


def _summary_rows(notifications: List[Any]) -> List[Dict[str, Any]]:
    rows = []
    for n in notifications:
        if not isinstance(n, dict):
            raise ValidationError("Each notification must be a JSON object")
        rows.append({
            "subject": n.get("subject"),
            "sender": n.get("name"),
            "email": n.get("email"),
            "sent_at": n.get("sent_at"),
            "read_at": n.get("read_at"),
            "body": str(n.get("body") or "")[:SUMMARY_BODY_CHARS],
        })
    return rows
