"""Errors raised by the infrastructure adapters.

Caller-input problems use ``protean.exceptions.ValidationError`` and direct
lookups of missing records use ``protean.exceptions.ObjectNotFoundError``;
the classes below cover failures of the systems this service talks to.
"""


class TidewaterError(Exception):
    """Base class for adapter errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class SignatureError(TidewaterError):
    """A webhook payload failed signature verification."""


class GatewayError(TidewaterError):
    """The payment gateway rejected or failed a request."""


class RenderError(TidewaterError):
    """Headless rendering of a receipt failed."""


class StoreError(TidewaterError):
    """A document store operation failed."""


class StoreUnavailableError(StoreError):
    """The document store cannot be reached or was never configured."""


def error_message(exc: Exception) -> str:
    """Flatten an exception into a single human readable line.

    protean's ValidationError carries a ``messages`` dict of field -> [msg];
    those are joined so clients get ``"amount: must be positive"`` rather than
    the repr of a dict.
    """
    messages = getattr(exc, "messages", None)
    if messages is None and exc.args:
        messages = exc.args[0]
    if isinstance(messages, dict) and messages:
        parts = []
        for field, errors in messages.items():
            if isinstance(errors, (list, tuple)):
                errors = "; ".join(str(e) for e in errors)
            parts.append(f"{field}: {errors}" if field != "_entity" else str(errors))
        return ", ".join(parts)
    message = getattr(exc, "message", None)
    if message:
        return str(message)
    return str(exc) or exc.__class__.__name__
