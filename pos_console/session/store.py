from __future__ import annotations

import logging
from dataclasses import dataclass, field
from threading import RLock

from pydantic import ValidationError

from pos_console.models.auth import CredentialPair
from pos_console.models.users import Principal
from pos_console.observability import incr_metric, log_event
from pos_console.providers.pos_api.client import PosApiClient, PosApiError, SessionExpiredError, server_error_message
from pos_console.session.errors import LoginFailedError, NotAuthenticatedError
from pos_console.session.impersonation import ImpersonationStack
from pos_console.session.storage import (
    ACCESS_TOKEN_KEY,
    IMPERSONATION_KEY,
    PRINCIPAL_KEY,
    REFRESH_TOKEN_KEY,
    SessionStorage,
)


DEFAULT_LOGIN_ERROR = "Invalid username or password"
UNEXPECTED_LOGIN_ERROR = "An unexpected error occurred. Please try again."


@dataclass(frozen=True)
class SessionSnapshot:
    principal: Principal | None
    credentials: CredentialPair | None
    stack: ImpersonationStack = field(default_factory=ImpersonationStack)
    revision: int = 0

    @property
    def is_authenticated(self) -> bool:
        return self.principal is not None and self.credentials is not None


class SessionStore:
    """Principal, active credential pair and impersonation stack, kept in step with storage.

    Every mutation bumps ``revision``. Writers that computed their change from
    an older snapshot pass that snapshot's revision to :meth:`commit` and lose.
    """

    def __init__(self, storage: SessionStorage, client: PosApiClient) -> None:
        self._storage = storage
        self._client = client
        self._lock = RLock()
        self._principal: Principal | None = None
        self._credentials: CredentialPair | None = None
        self._stack = ImpersonationStack()
        self._revision = 0

    @property
    def revision(self) -> int:
        with self._lock:
            return self._revision

    @property
    def is_authenticated(self) -> bool:
        return self.snapshot().is_authenticated

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot(
                principal=self._principal,
                credentials=self._credentials,
                stack=self._stack,
                revision=self._revision,
            )

    def require_snapshot(self) -> SessionSnapshot:
        snap = self.snapshot()
        if not snap.is_authenticated:
            raise NotAuthenticatedError()
        return snap

    def _persist_locked(self) -> None:
        if self._principal is None or self._credentials is None:
            return
        self._storage.set(ACCESS_TOKEN_KEY, self._credentials.access_token)
        self._storage.set(REFRESH_TOKEN_KEY, self._credentials.refresh_token)
        self._storage.set(PRINCIPAL_KEY, self._principal.model_dump_json())
        if self._stack.depth:
            self._storage.set(IMPERSONATION_KEY, self._stack.model_dump_json())
        else:
            self._storage.remove(IMPERSONATION_KEY)

    def begin(self, principal: Principal, credentials: CredentialPair) -> None:
        """Install a fresh session; any leftover impersonation state is dropped."""
        with self._lock:
            self._principal = principal
            self._credentials = credentials
            self._stack = ImpersonationStack()
            self._revision += 1
            self._persist_locked()

    def commit(
        self,
        credentials: CredentialPair,
        stack: ImpersonationStack,
        *,
        expected_revision: int,
    ) -> bool:
        with self._lock:
            if self._revision != expected_revision or self._principal is None:
                return False
            self._credentials = credentials
            self._stack = stack
            self._revision += 1
            self._persist_locked()
            return True

    def clear(self) -> None:
        with self._lock:
            self._principal = None
            self._credentials = None
            self._stack = ImpersonationStack()
            self._revision += 1
            self._storage.clear()

    def load(self) -> bool:
        """Read the persisted session. Corrupt state is discarded."""
        with self._lock:
            raw_principal = self._storage.get(PRINCIPAL_KEY)
            access_token = self._storage.get(ACCESS_TOKEN_KEY)
            if not raw_principal or not access_token:
                return False
            raw_stack = self._storage.get(IMPERSONATION_KEY)
            try:
                principal = Principal.model_validate_json(raw_principal)
                stack = ImpersonationStack.model_validate_json(raw_stack) if raw_stack else ImpersonationStack()
            except ValidationError as exc:
                log_event("stored_session_discarded", level=logging.WARNING, error_count=exc.error_count())
                self.clear()
                return False

            self._principal = principal
            self._credentials = CredentialPair(
                access_token=access_token,
                refresh_token=self._storage.get(REFRESH_TOKEN_KEY) or "",
            )
            self._stack = stack.for_principal(principal.kind)
            self._revision += 1
            self._persist_locked()
            return True

    def login(self, username: str, password: str) -> Principal:
        try:
            response = self._client.login(username, password)
        except PosApiError as exc:
            incr_metric("session.logins.failed", category=exc.category)
            log_event(
                "login_failed",
                level=logging.WARNING,
                username=username,
                status_code=exc.status_code,
                category=exc.category,
            )
            if exc.status_code is None:
                raise LoginFailedError(UNEXPECTED_LOGIN_ERROR) from exc
            message = server_error_message(exc.payload) or DEFAULT_LOGIN_ERROR
            raise LoginFailedError(message, status_code=exc.status_code) from exc

        self.begin(response.user, response.credentials)
        incr_metric("session.logins.succeeded")
        log_event(
            "login_succeeded",
            user_id=response.user.id,
            username=response.user.username,
            kind=response.user.kind.value,
        )
        return response.user

    def logout(self) -> None:
        snap = self.snapshot()
        try:
            if snap.credentials is not None:
                self._client.logout(snap.credentials.access_token)
        except PosApiError as exc:
            log_event(
                "logout_notification_failed",
                level=logging.WARNING,
                status_code=exc.status_code,
                category=exc.category,
                error=exc.message,
            )
        finally:
            self.clear()
        incr_metric("session.logouts")
        log_event("logout_completed", user_id=snap.principal.id if snap.principal else None)

    def expire(self) -> None:
        """Forced local logout after a 401. Ignored when no session is active."""
        with self._lock:
            if self._principal is None:
                return
            user_id = self._principal.id
            self.clear()
        incr_metric("session.expired")
        log_event("session_expired", level=logging.WARNING, user_id=user_id)

    def restore_session(self) -> bool:
        if not self.load():
            return False
        snap = self.snapshot()
        log_event("session_restored", user_id=snap.principal.id, depth=snap.stack.depth)

        try:
            status = self._client.impersonation_status(snap.credentials.access_token)
        except SessionExpiredError:
            return False
        except PosApiError as exc:
            incr_metric("session.reconciliation.failed", category=exc.category)
            log_event(
                "impersonation_reconciliation_failed",
                level=logging.WARNING,
                status_code=exc.status_code,
                category=exc.category,
                error=exc.message,
            )
            return True

        reconciled = snap.stack.reconcile(status)
        if reconciled != snap.stack:
            if self.commit(snap.credentials, reconciled, expected_revision=snap.revision):
                incr_metric("session.reconciliation.adjusted")
                log_event(
                    "impersonation_reconciled",
                    previous_depth=snap.stack.depth,
                    depth=reconciled.depth,
                )
        elif not snap.stack.depth and (status.is_impersonating_partner or status.is_impersonating_store):
            log_event(
                "impersonation_untracked",
                level=logging.WARNING,
                is_impersonating_partner=status.is_impersonating_partner,
                is_impersonating_store=status.is_impersonating_store,
            )
        return True
