"""Error taxonomy shared by the store adapters, core services and API layer."""


class IcebreakerError(Exception):
    """Base class for all service errors."""


class NotFound(IcebreakerError):
    """A referenced channel, session, member or document does not exist."""


class PermissionDenied(IcebreakerError):
    """The caller is not allowed to perform a write."""


class InvalidArgument(IcebreakerError, ValueError):
    """A request argument failed validation."""


class InvalidTransition(IcebreakerError):
    """A session status change would move the state machine backwards."""


class SessionAlreadyLive(IcebreakerError):
    """The channel already has an active session."""

    def __init__(self, channel_id: str, session_id: str):
        super().__init__(f"Channel {channel_id} already has a live session: {session_id}")
        self.channel_id = channel_id
        self.session_id = session_id


class StoreError(IcebreakerError):
    """Base class for document store failures."""


class TransientNetworkError(StoreError):
    """The document store is unreachable or a request failed transiently."""


class DocumentNotFound(StoreError, NotFound):
    """A write targeted a document that does not exist."""


class AlreadyExists(StoreError):
    """A create-if-absent write found an existing document."""


class InvalidDocument(StoreError):
    """A stored document does not match the expected record shape."""
