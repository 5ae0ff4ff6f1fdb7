import logging

import httpx

from app.config import settings
from app.models.order import Order

logger = logging.getLogger(__name__)


def _webhook_urls() -> list[str]:
    return [u.strip() for u in settings.WEBHOOK_URLS.split(",") if u.strip()]


def build_payload(order: Order) -> dict:
    total = sum(i.quantity for i in order.items)
    received = sum(i.received_quantity for i in order.items)
    return {
        "event": "order_update",
        "order_id": order.id,
        "reference_number": order.reference_number,
        "status": order.status.value,
        "supplier": {"id": order.supplier.id, "name": order.supplier.name},
        "ordered_date": order.ordered_date.isoformat() if order.ordered_date else None,
        "expected_delivery_date": order.expected_delivery_date.isoformat() if order.expected_delivery_date else None,
        "received_date": order.received_date.isoformat() if order.received_date else None,
        "quantities": {"ordered": total, "received": received},
    }


async def send_webhook(payload: dict, transport: httpx.AsyncBaseTransport | None = None) -> list[dict]:
    """Post an order update to every configured URL. Failures are reported, not raised."""
    urls = _webhook_urls()
    if not urls:
        return []

    results = []
    async with httpx.AsyncClient(timeout=10.0, transport=transport) as client:
        for url in urls:
            try:
                resp = await client.post(url, json=payload)
                results.append({"url": url, "status": resp.status_code, "success": resp.is_success})
            except httpx.HTTPError as e:
                logger.error("Webhook failed for %s: %s", url, e)
                results.append({"url": url, "status": 0, "success": False, "error": str(e)})
    return results
