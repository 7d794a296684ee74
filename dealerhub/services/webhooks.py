from __future__ import annotations

import logging

from dealerhub.core.config import settings
from dealerhub.core.errors import UpstreamError
from dealerhub.core.telemetry import record_webhook_result, tracer
from dealerhub.models.base import VEHICLE_FIELDS
from dealerhub.models.car_listing import CarListing
from dealerhub.services.http_client import HubHttpClient

log = logging.getLogger(__name__)


def promotion_payload(car: CarListing) -> dict:
    body = {f: getattr(car, f) for f in VEHICLE_FIELDS}
    body["price"] = str(car.price) if car.price is not None else None
    body.update(
        id=car.id,
        dealer_id=car.dealer_id,
        status=car.status,
        is_public=car.is_public,
        is_shared_with_network=car.is_shared_with_network,
        is_special_offer=car.is_special_offer,
        special_offer_label=car.special_offer_label,
        source_type=car.source_type,
        source_id=car.source_id,
    )
    return body


async def notify_promotion(http: HubHttpClient | None, car: CarListing) -> None:
    """POST a freshly promoted listing to the promotion webhook, if configured.

    Raises UpstreamError on any non-2xx answer or transport failure so the
    caller can abort the surrounding decision.
    """
    url = settings.promotion_webhook_url
    if not url:
        return
    if http is None:
        raise UpstreamError("Promotion webhook configured but no HTTP client available")

    with tracer.start_as_current_span("webhook.promotion") as span:
        span.set_attribute("listing.id", car.id)
        result = await http.post_json(url=url, json_body={"listing": promotion_payload(car)}, request_id=car.id)
        record_webhook_result(span, result)

    if not result.ok:
        log.warning(
            "promotion webhook failed for %s: %s (%s)",
            car.id, result.error_code, result.error_message,
        )
        raise UpstreamError(
            "Promotion webhook failed",
            details=[{"status_code": result.status_code, "error_code": result.error_code}],
            retryable=result.retryable,
        )
