from __future__ import annotations


class ConsoleSessionError(Exception):
    """Base class for local session/impersonation failures."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotAuthenticatedError(ConsoleSessionError):
    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(message)


class LoginFailedError(ConsoleSessionError):
    """Login was rejected; ``message`` is what the login form should show."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ImpersonationNotAllowedError(ConsoleSessionError):
    """The caller's role or the requested target rules out the transition."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ImpersonationStateError(ConsoleSessionError):
    """The transition is not legal from the current impersonation state."""


class StaleTransitionError(ConsoleSessionError):
    """The session changed while the transition was in flight; its result was dropped."""

    def __init__(self, message: str = "Session changed before the impersonation response arrived") -> None:
        super().__init__(message)


class StoreSelectionLockedError(ConsoleSessionError):
    def __init__(self, message: str = "Store selection is fixed while impersonating a store") -> None:
        super().__init__(message)


class ImpersonationFailedError(ConsoleSessionError):
    """The POS API refused or failed an impersonation entry; nothing changed locally."""

    def __init__(self, message: str, *, status_code: int | None = None, category: str = "unknown") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.category = category


class UnknownStoreError(ConsoleSessionError):
    def __init__(self, store_id: int) -> None:
        super().__init__(f"Store {store_id} is not available for the current partner")
        self.store_id = store_id
