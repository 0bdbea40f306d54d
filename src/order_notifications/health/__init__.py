"""Component health checks and the registry behind ``/ready``."""

from .checks import ConsumerStateHealthCheck, MessageBrokerHealthCheck, StoreHealthCheck
from .registry import DOWN, UP, HealthRegistry

__all__ = [
    "DOWN",
    "UP",
    "ConsumerStateHealthCheck",
    "HealthRegistry",
    "MessageBrokerHealthCheck",
    "StoreHealthCheck",
]
