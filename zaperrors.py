#!/usr/bin/env python3
"""Errors raised while zapping a note.

Everything up to and including the payment is fatal and aborts the run.
VerificationTimeout is only ever reported after a payment succeeded and
never leads to a retry or a reversal.
"""

class ZapError(Exception):
    """Base for all zap pipeline errors."""

class ConfigError(ZapError):
    """Configuration file missing, unreadable or incomplete."""

class NotFoundError(ZapError):
    """An expected event or field was not found on the relays."""
    def __init__(self, what):
        super().__init__(f"{what} not found")
        self.what = what

class MalformedInputError(ZapError):
    """Bad lightning address or event identifier."""

class UnsupportedCapabilityError(ZapError):
    """The LNURL service does not support zaps."""

class MissingFieldError(ZapError):
    """A required field is absent from an LNURL response."""
    def __init__(self, field, source="LNURL response"):
        super().__init__(f"{source} is missing {field}")
        self.field = field

class DecodeError(ZapError):
    """An external response could not be decoded."""

class NetworkError(ZapError):
    """HTTP request to the LNURL service failed."""

class AmountOutOfRangeError(ZapError):
    """Configured amount is outside the service's minSendable/maxSendable."""

class ResolutionError(ZapError):
    """Lightning node host did not resolve to any address."""

class NodeConnectionError(ZapError, ConnectionError):
    """Could not establish an authenticated session with the node."""

class PaymentError(ZapError):
    """The node rejected or failed the payment. Never retried."""

class VerificationTimeout(ZapError):
    """Payment succeeded but no zap receipt was seen in time."""
