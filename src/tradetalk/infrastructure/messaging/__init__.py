"""Messaging infrastructure."""

from tradetalk.infrastructure.messaging.exceptions import MessagingError
from tradetalk.infrastructure.messaging.twilio import TwilioMessagingService

__all__ = ["MessagingError", "TwilioMessagingService"]
