"""Transport layer - Recepción MQTT."""

from .message_handler import HandleOutcome, handle_message
from .subscription import SubscriptionLoop, SubscriptionState

__all__ = ["HandleOutcome", "handle_message", "SubscriptionLoop", "SubscriptionState"]
