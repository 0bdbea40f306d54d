"""Fixed notification content for order-created events."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .delivery import RenderedNotification

if TYPE_CHECKING:
    from ..envelope import EventEnvelope


def order_created_notification(envelope: EventEnvelope) -> RenderedNotification:
    """Plain confirmation text; no templating."""
    amount = f"{envelope.total:.2f} {envelope.currency}"
    return RenderedNotification(
        subject=f"Order {envelope.order_id} confirmed",
        body_text=(
            f"Thanks for your order {envelope.order_id}. "
            f"Total: {amount}. "
            f"Placed at {envelope.created_at.isoformat()}."
        ),
    )
