from pos_console.session.console import ConsoleSession
from pos_console.session.errors import (
    ConsoleSessionError,
    ImpersonationFailedError,
    ImpersonationNotAllowedError,
    ImpersonationStateError,
    LoginFailedError,
    NotAuthenticatedError,
    StaleTransitionError,
    StoreSelectionLockedError,
    UnknownStoreError,
)
from pos_console.session.impersonation import ImpersonationStack, PartnerLevel, StoreLevel
from pos_console.session.storage import JsonFileStorage, MemoryStorage, SessionStorage

__all__ = [
    "ConsoleSession",
    "ConsoleSessionError",
    "ImpersonationFailedError",
    "ImpersonationNotAllowedError",
    "ImpersonationStack",
    "ImpersonationStateError",
    "JsonFileStorage",
    "LoginFailedError",
    "MemoryStorage",
    "NotAuthenticatedError",
    "PartnerLevel",
    "SessionStorage",
    "StaleTransitionError",
    "StoreLevel",
    "StoreSelectionLockedError",
    "UnknownStoreError",
]
