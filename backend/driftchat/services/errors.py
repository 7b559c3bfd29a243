"""Typed failures raised by the relay core."""


class RelayError(RuntimeError):
    """Base class for errors surfaced to HTTP callers and live sessions."""


class NotFoundError(RelayError):
    """Raised when a referenced record does not exist."""


class LinkNotFoundError(NotFoundError):
    message = "Link not found or expired"

    def __init__(self, link_id: str) -> None:
        super().__init__(self.message)
        self.link_id = link_id


class LinkExpiredError(LinkNotFoundError):
    """The link existed but is older than the link TTL."""

    message = "Chat link has expired"


class ConversationNotFoundError(NotFoundError):
    def __init__(self, conversation_id: str) -> None:
        super().__init__("Conversation not found")
        self.conversation_id = conversation_id


class MessageValidationError(RelayError):
    """Raised for blank or oversized message text."""


class TransientStoreError(RelayError):
    """Raised when the durable backend cannot complete a write."""
