"""EnvelopeDecoder — schema-validated decode of raw messages into EventEnvelopes."""

from __future__ import annotations

import json
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from .envelope import WIRE_FIELDS, EventEnvelope
from .exceptions import EnvelopeValidationError

if TYPE_CHECKING:
    from .envelope import InboundMessage


def _summarize(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "__root__"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


class EnvelopeDecoder:
    """Decode JSON message values into EventEnvelope or raise EnvelopeValidationError.

    Never returns partially-typed data: either every required field validates
    or the message is rejected as a whole.
    """

    def decode(self, message: InboundMessage) -> EventEnvelope:
        """Decode *message* and attach its transport metadata."""
        data = self._load(message.value)

        raw_id = data.get("eventId")
        event_id = raw_id.strip() if isinstance(raw_id, str) else None
        if not event_id:
            raise EnvelopeValidationError("missing or empty eventId")

        fields: dict[str, Any] = {k: data[k] for k in WIRE_FIELDS if k in data}
        try:
            return EventEnvelope.model_validate(
                {
                    **fields,
                    "topic": message.topic,
                    "partition": message.partition,
                    "offset": message.offset,
                    "received_at": message.received_at,
                }
            )
        except ValidationError as e:
            raise EnvelopeValidationError(_summarize(e), event_id=event_id) from e

    @staticmethod
    def _load(value: bytes | None) -> dict[str, Any]:
        if not value:
            raise EnvelopeValidationError("empty message value")
        try:
            text = value.decode("utf-8")
        except UnicodeDecodeError as e:
            raise EnvelopeValidationError(f"value is not UTF-8: {e}") from e
        try:
            data = json.loads(text, parse_float=Decimal)
        except json.JSONDecodeError as e:
            raise EnvelopeValidationError(f"invalid JSON: {e.msg}") from e
        except (ValueError, RecursionError) as e:
            # Oversized integers and pathological nesting
            raise EnvelopeValidationError(f"invalid JSON: {type(e).__name__}: {e}") from e
        if not isinstance(data, dict):
            raise EnvelopeValidationError(
                f"expected a JSON object, got {type(data).__name__}"
            )
        return data
