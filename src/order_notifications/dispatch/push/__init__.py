"""Push channel."""

from __future__ import annotations

from .gateway import PushGatewaySender

__all__ = ["PushGatewaySender"]
