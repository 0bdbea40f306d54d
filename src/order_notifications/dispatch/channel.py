"""Recipient resolution for order events."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ..envelope import EventEnvelope

logger = logging.getLogger(__name__)


class RecipientResolver:
    """
    Base resolver that maps an event to the address of its recipient.

    Subclass or replace to implement custom lookup (e.g. a user directory).
    Return None when the event has no reachable recipient.
    """

    async def resolve(self, envelope: EventEnvelope) -> str | None:
        logger.debug(f"No recipient routing configured for {envelope.event_id}")
        return None


class TemplateRecipientResolver(RecipientResolver):
    """Builds the address from a format string, e.g. ``"{user_id}@mail.example"``.

    Available fields: ``user_id``, ``order_id``, ``event_id``.
    """

    def __init__(self, template: str) -> None:
        self.template = template

    async def resolve(self, envelope: EventEnvelope) -> str | None:
        try:
            return self.template.format(
                user_id=envelope.user_id,
                order_id=envelope.order_id,
                event_id=envelope.event_id,
            )
        except (KeyError, IndexError, ValueError, AttributeError):
            logger.warning(f"Recipient template {self.template!r} is not resolvable")
            return None


class MappingRecipientResolver(RecipientResolver):
    """Looks the user id up in a static mapping."""

    def __init__(self, addresses: Mapping[str, str]) -> None:
        self._addresses = dict(addresses)

    async def resolve(self, envelope: EventEnvelope) -> str | None:
        return self._addresses.get(envelope.user_id)
