from __future__ import annotations

from typing import Any, Callable

import httpx
from pydantic import ValidationError

from pos_console.models.auth import (
    ExitStoreImpersonationResponse,
    ImpersonationResponse,
    ImpersonationStatus,
    LoginResponse,
    StoreImpersonationResponse,
)
from pos_console.models.tenancy import Store


LOGIN_PATH = "/auth/login/"
LOGOUT_PATH = "/auth/logout/"
IMPERSONATION_STATUS_PATH = "/auth/impersonation-status/"
EXIT_PARTNER_PATH = "/auth/exit-impersonation/"
EXIT_STORE_PATH = "/auth/exit-store-impersonation/"
STORES_PATH = "/stores/"

_TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504}
_AUTHORIZATION_STATUS_CODES = {400, 403, 404, 409}


class PosApiError(Exception):
    """Provider-level exception for POS API failures.

    ``message`` is the server's own reason when the response carried one.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    @property
    def category(self) -> str:
        if self.status_code is None:
            return "transient" if "connectivity error" in self.message.lower() else "unknown"
        if self.status_code == 401:
            return "authentication"
        if self.status_code in _AUTHORIZATION_STATUS_CODES:
            return "authorization"
        if self.status_code in _TRANSIENT_STATUS_CODES:
            return "transient"
        return "unknown"

    @property
    def retryable(self) -> bool:
        return self.category == "transient"


class SessionExpiredError(PosApiError):
    """An authenticated call was rejected with 401."""

    @property
    def category(self) -> str:
        return "session_expired"


def server_error_message(payload: Any) -> str | None:
    """Pick the human readable reason out of an error body (``error`` beats ``detail``)."""
    if not isinstance(payload, dict):
        return None
    for key in ("error", "detail", "message"):
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value
    non_field = payload.get("non_field_errors")
    if isinstance(non_field, list) and non_field and isinstance(non_field[0], str):
        return non_field[0]
    return None


def impersonate_partner_path(partner_id: int) -> str:
    return f"/auth/impersonate/{partner_id}/"


def impersonate_store_path(partner_id: int, store_id: int) -> str:
    return f"/auth/impersonate/{partner_id}/store/{store_id}/"


def _results(data: Any) -> list[dict[str, Any]]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get("results"), list):
        return data["results"]
    raise PosApiError("Unexpected POS API list response shape", payload=data)


class PosApiClient:
    """Bearer-token client for the POS REST API.

    The caller passes the access token on every call so that each request is
    bound to exactly one credential snapshot.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 12.0,
        transport: httpx.BaseTransport | None = None,
        on_session_expired: Callable[[], None] | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._on_session_expired = on_session_expired
        self._http = httpx.Client(
            base_url=self.base_url,
            timeout=timeout_seconds,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    def close(self) -> None:
        self._http.close()

    def _headers(self, access_token: str | None) -> dict[str, str]:
        if not access_token:
            return {}
        return {"Authorization": f"Bearer {access_token}"}

    def _request_json(
        self,
        method: str,
        path: str,
        *,
        access_token: str | None = None,
        params: dict[str, Any] | None = None,
        json_payload: dict[str, Any] | None = None,
    ) -> Any:
        try:
            response = self._http.request(
                method,
                path,
                headers=self._headers(access_token),
                params=params,
                json=json_payload,
            )
        except httpx.HTTPError as exc:
            raise PosApiError(f"POS API connectivity error: {exc}") from exc

        try:
            payload = response.json() if response.content else None
        except ValueError:
            payload = None

        if response.status_code == 401 and access_token and path != LOGIN_PATH:
            if self._on_session_expired is not None:
                self._on_session_expired()
            raise SessionExpiredError(
                server_error_message(payload) or "Session expired",
                status_code=401,
                payload=payload,
            )
        if response.status_code >= 400:
            raise PosApiError(
                server_error_message(payload)
                or f"POS API returned HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
                payload=payload,
            )
        if response.content and payload is None:
            raise PosApiError("POS API returned non-JSON response", status_code=response.status_code)
        return payload

    def login(self, username: str, password: str) -> LoginResponse:
        data = self._request_json(
            "POST",
            LOGIN_PATH,
            json_payload={"username": username, "password": password},
        )
        try:
            return LoginResponse.model_validate(data)
        except ValidationError as exc:
            raise PosApiError("Unexpected POS API login response", payload=data) from exc

    def logout(self, access_token: str) -> None:
        self._request_json("POST", LOGOUT_PATH, access_token=access_token)

    def impersonation_status(self, access_token: str) -> ImpersonationStatus:
        data = self._request_json("GET", IMPERSONATION_STATUS_PATH, access_token=access_token)
        try:
            return ImpersonationStatus.model_validate(data or {})
        except ValidationError as exc:
            raise PosApiError("Unexpected POS API impersonation status response", payload=data) from exc

    def impersonate_partner(self, access_token: str, partner_id: int) -> ImpersonationResponse:
        data = self._request_json("POST", impersonate_partner_path(partner_id), access_token=access_token)
        try:
            return ImpersonationResponse.model_validate(data)
        except ValidationError as exc:
            raise PosApiError("Unexpected POS API partner impersonation response", payload=data) from exc

    def exit_impersonation(self, access_token: str) -> None:
        self._request_json("POST", EXIT_PARTNER_PATH, access_token=access_token)

    def impersonate_store(
        self,
        access_token: str,
        partner_id: int,
        store_id: int,
    ) -> StoreImpersonationResponse:
        data = self._request_json(
            "POST",
            impersonate_store_path(partner_id, store_id),
            access_token=access_token,
        )
        try:
            return StoreImpersonationResponse.model_validate(data)
        except ValidationError as exc:
            raise PosApiError("Unexpected POS API store impersonation response", payload=data) from exc

    def exit_store_impersonation(self, access_token: str) -> ExitStoreImpersonationResponse:
        data = self._request_json("POST", EXIT_STORE_PATH, access_token=access_token)
        if not isinstance(data, dict):
            return ExitStoreImpersonationResponse()
        try:
            return ExitStoreImpersonationResponse.model_validate(data)
        except ValidationError:
            return ExitStoreImpersonationResponse()

    def list_stores(self, access_token: str) -> list[Store]:
        data = self._request_json("GET", STORES_PATH, access_token=access_token)
        try:
            return [Store.model_validate(row) for row in _results(data)]
        except ValidationError as exc:
            raise PosApiError("Unexpected POS API store list response", payload=data) from exc

    def get_json(
        self,
        access_token: str,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        return self._request_json("GET", path, access_token=access_token, params=params)
