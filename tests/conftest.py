from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from pos_console.session.console import ConsoleSession
from pos_console.session.storage import MemoryStorage


BASE_URL = "http://pos.test/api"

PARTNERS: dict[int, dict[str, Any]] = {
    9: {"id": 9, "name": "Nine Retail", "code": "NINE", "is_active": True},
    42: {"id": 42, "name": "Forty Two Foods", "code": "FTF", "is_active": True},
    50: {"id": 50, "name": "Dormant Goods", "code": "DRM", "is_active": False},
}

STORES: dict[int, dict[str, Any]] = {
    3: {"id": 3, "name": "Nine Downtown", "code": "N-DT", "is_active": True, "partner": 9},
    11: {"id": 11, "name": "Nine Mall", "code": "N-ML", "is_active": True, "partner": 9},
    12: {"id": 12, "name": "Nine Airport", "code": "N-AP", "is_active": True, "partner": 9},
    7: {"id": 7, "name": "FTF Harbor", "code": "F-HB", "is_active": True, "partner": 42},
    8: {"id": 8, "name": "FTF Market", "code": "F-MK", "is_active": True, "partner": 42},
}

USERS: dict[str, dict[str, Any]] = {
    "root": {
        "id": 1,
        "username": "root",
        "email": "root@pos.test",
        "role": "ADMIN",
        "is_super_admin": True,
        "partner": None,
        "assigned_store": None,
    },
    "owner": {
        "id": 2,
        "username": "owner",
        "email": "owner@nine.test",
        "role": "ADMIN",
        "is_super_admin": False,
        "partner": {"id": 9, "name": "Nine Retail", "code": "NINE"},
        "assigned_store": None,
        "default_store": STORES[11],
    },
    "clerk": {
        "id": 3,
        "username": "clerk",
        "role": "STORE_ADMIN",
        "is_super_admin": False,
        "partner": {"id": 9, "name": "Nine Retail", "code": "NINE"},
        "assigned_store": STORES[3],
    },
    "till": {
        "id": 4,
        "username": "till",
        "role": "CASHIER",
        "is_super_admin": False,
        "partner": {"id": 9, "name": "Nine Retail", "code": "NINE"},
        "assigned_store": STORES[3],
    },
}

PASSWORD = "s3cret-pass"


class FakePosApi:
    """In-memory stand-in for the POS REST API, served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.tokens: dict[str, dict[str, Any]] = {}
        self.failures: dict[tuple[str, str], tuple[int, Any]] = {}
        self.broken: set[tuple[str, str]] = set()
        self.hooks: dict[tuple[str, str], Callable[[], None]] = {}
        self.status_override: dict[str, Any] | None = None
        self.exit_store_returns_tokens = False
        self._counter = 0

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def fail(self, method: str, path: str, status_code: int, body: Any = None) -> None:
        self.failures[(method, path)] = (status_code, body)

    def break_connection(self, method: str, path: str) -> None:
        self.broken.add((method, path))

    def on(self, method: str, path: str, hook: Callable[[], None]) -> None:
        """Run ``hook`` while the request is in flight, before it is answered."""
        self.hooks[(method, path)] = hook

    def revoke_all(self) -> None:
        self.tokens.clear()

    def paths(self, method: str | None = None) -> list[str]:
        return [call["path"] for call in self.calls if method is None or call["method"] == method]

    def issue(self, username: str, partner_id: int | None = None, store_id: int | None = None) -> dict[str, str]:
        self._counter += 1
        access = f"acc-{self._counter}"
        refresh = f"ref-{self._counter}"
        self.tokens[access] = {"username": username, "partner_id": partner_id, "store_id": store_id}
        return {"access_token": access, "refresh_token": refresh}

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/api")
        method = request.method
        auth = request.headers.get("Authorization", "")
        token = auth.removeprefix("Bearer ") if auth.startswith("Bearer ") else None
        self.calls.append(
            {
                "method": method,
                "path": path,
                "params": dict(request.url.params),
                "token": token,
            }
        )

        hook = self.hooks.pop((method, path), None)
        if hook is not None:
            hook()
        if (method, path) in self.broken:
            raise httpx.ConnectError("connection refused", request=request)
        if (method, path) in self.failures:
            status_code, body = self.failures[(method, path)]
            return httpx.Response(status_code, json=body)

        if path == "/auth/login/" and method == "POST":
            return self._login(json.loads(request.content or b"{}"))

        scope = self.tokens.get(token or "")
        if scope is None:
            return httpx.Response(401, json={"detail": "Given token not valid for any token type"})
        user = USERS[scope["username"]]

        if path == "/auth/logout/":
            self.tokens.pop(token, None)
            return httpx.Response(200, json={"message": "Logged out"})
        if path == "/auth/impersonation-status/":
            return httpx.Response(200, json=self.status_override or self._status(scope))
        if path == "/auth/exit-impersonation/":
            return httpx.Response(200, json={"message": "Exited impersonation"})
        if path == "/auth/exit-store-impersonation/":
            body: dict[str, Any] = {"message": "Exited store impersonation"}
            if self.exit_store_returns_tokens:
                body.update(self.issue(scope["username"], partner_id=scope["partner_id"]))
            return httpx.Response(200, json=body)
        if path.startswith("/auth/impersonate/"):
            return self._impersonate(path, scope, user)
        if path == "/stores/":
            partner_id = scope["partner_id"] or (user.get("partner") or {}).get("id")
            rows = [store for store in STORES.values() if store["partner"] == partner_id]
            return httpx.Response(200, json={"count": len(rows), "results": rows})
        if path == "/auth/partners/":
            return httpx.Response(200, json=list(PARTNERS.values()))
        return httpx.Response(200, json={"results": [], "path": path, "params": dict(request.url.params)})

    def _login(self, body: dict[str, Any]) -> httpx.Response:
        user = USERS.get(body.get("username", ""))
        if user is None or body.get("password") != PASSWORD:
            return httpx.Response(401, json={"error": "Invalid credentials"})
        tokens = self.issue(user["username"])
        return httpx.Response(
            200,
            json={**tokens, "expires_in": 3600, "token_type": "Bearer", "user": user},
        )

    def _status(self, scope: dict[str, Any]) -> dict[str, Any]:
        return {
            "is_impersonating_partner": scope["partner_id"] is not None,
            "partner": PARTNERS.get(scope["partner_id"]) if scope["partner_id"] else None,
            "is_impersonating_store": scope["store_id"] is not None,
            "store": STORES.get(scope["store_id"]) if scope["store_id"] else None,
        }

    def _impersonate(self, path: str, scope: dict[str, Any], user: dict[str, Any]) -> httpx.Response:
        parts = [part for part in path.split("/") if part]
        partner_id = int(parts[2])
        if len(parts) == 3:
            if not user["is_super_admin"]:
                return httpx.Response(403, json={"detail": "Only super admins can impersonate partners."})
            partner = PARTNERS.get(partner_id)
            if partner is None:
                return httpx.Response(404, json={"detail": "Not found."})
            if not partner["is_active"]:
                return httpx.Response(400, json={"error": "Cannot impersonate inactive partner"})
            tokens = self.issue(user["username"], partner_id=partner_id)
            return httpx.Response(
                200,
                json={**tokens, "expires_in": 3600, "token_type": "Bearer", "impersonating": partner},
            )

        store_id = int(parts[4])
        store = STORES.get(store_id)
        if store is None or store["partner"] != partner_id:
            return httpx.Response(404, json={"error": "Store not found for this partner"})
        tokens = self.issue(user["username"], partner_id=scope["partner_id"], store_id=store_id)
        return httpx.Response(
            200,
            json={**tokens, "expires_in": 3600, "token_type": "Bearer", "impersonating_store": store},
        )


@pytest.fixture
def fake_api() -> FakePosApi:
    return FakePosApi()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def make_console(fake_api: FakePosApi, storage: MemoryStorage):
    consoles: list[ConsoleSession] = []

    def _make(backing: MemoryStorage | None = None) -> ConsoleSession:
        console = ConsoleSession(
            backing if backing is not None else storage,
            api_base_url=BASE_URL,
            transport=fake_api.transport(),
        )
        consoles.append(console)
        return console

    yield _make
    for console in consoles:
        console.close()


@pytest.fixture
def console(make_console) -> ConsoleSession:
    return make_console()
