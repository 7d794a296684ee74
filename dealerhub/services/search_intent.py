from __future__ import annotations

import logging
import uuid
from decimal import Decimal, InvalidOperation

from sqlalchemy.ext.asyncio import AsyncSession

from dealerhub.core.config import settings
from dealerhub.core.errors import UpstreamError
from dealerhub.core.telemetry import record_webhook_result, tracer
from dealerhub.models.search_intent import SearchIntent
from dealerhub.services.http_client import HubHttpClient

log = logging.getLogger(__name__)


def _confidence(raw) -> Decimal | None:
    if raw is None:
        return None
    try:
        value = Decimal(str(raw))
    except InvalidOperation:
        return None
    if value < 0 or value > 1:
        return None
    return value


async def create_search_intent(
    db: AsyncSession,
    *,
    http: HubHttpClient,
    user_id: str | None,
    user_input: str,
    session_id: str | None = None,
) -> SearchIntent:
    """
    Record a free-text search and hand it to the analysis webhook.

    200 with JSON stores the parsed filters; 202 means the analyser accepted
    the job and will report back out of band. Anything else leaves the intent
    `failed` with no parsed data and raises UpstreamError. The failed row is
    flushed, not committed: the caller decides whether to keep it.
    """
    intent = SearchIntent(
        user_id=user_id,
        session_id=session_id or uuid.uuid4().hex,
        user_input=user_input,
        status="received",
        created_by=user_id or "anonymous",
        updated_by=user_id or "anonymous",
    )
    db.add(intent)
    await db.flush()

    url = settings.analysis_webhook_url
    if not url:
        intent.status = "failed"
        intent.last_error = "analysis webhook not configured"
        await db.flush()
        raise UpstreamError("Analysis webhook not configured")

    with tracer.start_as_current_span("webhook.analysis") as span:
        span.set_attribute("search_intent.id", intent.id)
        result = await http.post_json(
            url=url,
            json_body={"user_input": user_input, "record_id": intent.id, "session_id": intent.session_id},
            request_id=intent.id,
        )
        record_webhook_result(span, result)

    if not result.ok:
        intent.status = "failed"
        intent.last_error = result.error_message or result.error_code
        await db.flush()
        log.warning("analysis webhook failed for %s: %s", intent.id, result.error_code)
        raise UpstreamError(
            "Search analysis failed",
            details=[{"status_code": result.status_code, "error_code": result.error_code}],
            retryable=result.retryable,
        )

    if result.status_code == 202:
        intent.status = "accepted"
    else:
        intent.parsed_filters = result.detail.get("parsed_filters") or {}
        intent.confidence = _confidence(result.detail.get("confidence"))
        intent.status = "parsed"
    await db.flush()
    return intent
