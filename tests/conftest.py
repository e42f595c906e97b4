"""
AUTHCORE - Pytest Configuration
Fixtures partagées: configuration, service d'identité simulé
(httpx.MockTransport) et credentials JWT signés avec PyJWT.
"""

import asyncio
import json
import time
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httpx
import jwt
import pytest

from authcore.core.bootstrap import AuthCore, create_auth_core
from authcore.core.interfaces import ClientConfig
from authcore.core.signals import SignalBus
from authcore.logging.structured_logger import StructuredLogger
from authcore.storage.memory_storage import InMemoryStorage

BASE_URL = "http://api.example.test"
JWT_SECRET = "authcore-test-signing-secret-0123456789"


def mint_credential(
    user_id: str = "user-1",
    tenant_id: str = "tenant-1",
    role: Optional[str] = "STAFF",
    company_id: Optional[str] = None,
    email: str = "owner@example.com",
    ttl: int = 900,
    **extra: Any,
) -> str:
    """Émet un JWT HS256 avec les claims du service."""
    now = int(time.time())
    payload: Dict[str, Any] = {
        "user_id": user_id,
        "email": email,
        "tenant_id": tenant_id,
        "iat": now,
        "exp": now + ttl,
        "jti": uuid.uuid4().hex,
    }
    if role is not None:
        payload["role"] = role
    if company_id is not None:
        payload["company_id"] = company_id
    payload.update(extra)
    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


def company_entry(
    company_id: str,
    role: Optional[str] = "STAFF",
    active: bool = True,
    access_tier: int = 2,
    name: Optional[str] = None,
    tenant_id: str = "tenant-1",
) -> Dict[str, Any]:
    """Entrée d'annuaire au format du service."""
    return {
        "id": company_id,
        "tenantId": tenant_id,
        "name": name or company_id.upper(),
        "legalName": f"PT {company_id.upper()}",
        "entityType": "PT",
        "logoUrl": None,
        "isActive": active,
        "userRole": role,
        "accessTier": access_tier,
    }


def _ok(data: Any = None, status: int = 200, headers: Optional[List[tuple]] = None) -> httpx.Response:
    return httpx.Response(status, json={"success": True, "data": data}, headers=headers)


def _error(status: int, code: str, message: str, details: Optional[Dict[str, Any]] = None) -> httpx.Response:
    error: Dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return httpx.Response(status, json={"success": False, "error": error})


class FakeIdentityService:
    """
    Service d'identité simulé.

    Routes: login, logout, renew, switch-company, tenants, switch-tenant,
    me, annuaire, et endpoints métier scopés société (tout autre chemin).
    /admin/system-config répond toujours un 403 générique.
    """

    def __init__(self) -> None:
        self.email = "owner@example.com"
        self.password = "s3cret-pass"
        self.full_name = "Budi Santoso"
        self.user_id = "user-1"
        self.tenant_id = "tenant-1"
        self.tenant_role: Optional[str] = "STAFF"
        self.companies: List[Dict[str, Any]] = [
            company_entry("company-a", role="ADMIN"),
            company_entry("company-b", role="STAFF"),
        ]
        self.tenants: List[Dict[str, Any]] = [
            {"id": "tenant-1", "name": "Tenant One", "status": "ACTIVE", "role": "STAFF"},
            {"id": "tenant-2", "name": "Tenant Two", "status": "ACTIVE", "role": "OWNER"},
        ]
        self.tenant_directories: Dict[str, List[Dict[str, Any]]] = {}
        self.locked = False
        self.renew_mode = "ok"
        self.delays: Dict[str, float] = {}
        self.logout_mode = "ok"
        self.failures: Dict[str, tuple] = {}
        self.csrf = "csrf-token-123"
        self.scoped_company: Optional[str] = None
        self.valid_tokens: set = set()
        self.requests: List[httpx.Request] = []
        self.calls: Dict[str, int] = {}

    # ──────────────────────────────────────────────────────────────────────
    # Pilotage
    # ──────────────────────────────────────────────────────────────────────

    def issue(self, company_id: Optional[str] = None) -> str:
        token = mint_credential(
            user_id=self.user_id,
            tenant_id=self.tenant_id,
            role=self.tenant_role,
            company_id=company_id,
            email=self.email,
        )
        self.valid_tokens.add(token)
        return token

    def invalidate_tokens(self) -> None:
        self.valid_tokens.clear()

    def revoke(self, company_id: str) -> None:
        self.companies = [c for c in self.companies if c["id"] != company_id]

    def accessible(self, company_id: Optional[str]) -> bool:
        return any(c["id"] == company_id and c["isActive"] for c in self.companies)

    def count(self, route: str) -> int:
        return self.calls.get(route, 0)

    def requests_to(self, route: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/api/v1" + route]

    # ──────────────────────────────────────────────────────────────────────
    # Routage
    # ──────────────────────────────────────────────────────────────────────

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        route = path[len("/api/v1"):] if path.startswith("/api/v1") else path
        self.calls[route] = self.calls.get(route, 0) + 1

        if route in self.delays:
            await asyncio.sleep(self.delays[route])
        if route in self.failures:
            status, code = self.failures[route]
            return _error(status, code, "Injected failure")

        if route == "/auth/login":
            return self._login(request)
        if route == "/auth/renew":
            return await self._renew(request)
        if route == "/auth/logout" and self.logout_mode == "transport_error":
            raise httpx.ConnectError("connection refused", request=request)

        token = self._bearer(request)
        if token not in self.valid_tokens:
            return _error(401, "AUTHENTICATION_ERROR", "Invalid or expired token")

        if route == "/auth/logout":
            self.valid_tokens.discard(token)
            return _ok({"message": "logged out"})
        if route == "/auth/switch-company":
            return self._switch(request)
        if route == "/tenant/companies":
            return _ok(list(self.companies))
        if route == "/auth/tenants":
            return _ok({"tenants": list(self.tenants)})
        if route == "/auth/switch-tenant":
            return self._switch_tenant(request)
        if route == "/auth/me":
            return _ok({"user": self._user(), "activeTenant": self._tenant(self.tenant_id)})
        if route == "/admin/system-config":
            return _error(403, "FORBIDDEN", "Insufficient permissions")

        company_id = request.headers.get("X-Company-ID")
        if not self.accessible(company_id):
            return _error(403, "COMPANY_ACCESS_DENIED", "No access to this company")
        return _ok({"company_id": company_id, "route": route, "token": token})

    @staticmethod
    def _bearer(request: httpx.Request) -> Optional[str]:
        header = request.headers.get("Authorization", "")
        if header.startswith("Bearer "):
            return header[len("Bearer "):]
        return None

    @staticmethod
    def _body(request: httpx.Request) -> Dict[str, Any]:
        if not request.content:
            return {}
        return json.loads(request.content)

    def _login(self, request: httpx.Request) -> httpx.Response:
        body = self._body(request)
        if self.locked:
            return _error(403, "ACCOUNT_LOCKED", "Account locked", {"retryAfterSeconds": 900, "tier": 2})
        if body.get("email") != self.email or body.get("password") != self.password:
            return _error(401, "AUTHENTICATION_ERROR", "Invalid email or password")

        token = self.issue()
        return _ok(
            {"accessToken": token, "tokenType": "Bearer", "expiresIn": 900, "user": self._user()},
            headers=[
                ("set-cookie", "refresh_token=rt-1; Path=/; HttpOnly"),
                ("set-cookie", f"csrf_token={self.csrf}; Path=/"),
            ],
        )

    async def _renew(self, request: httpx.Request) -> httpx.Response:
        if self.renew_mode == "transport_error":
            raise httpx.ConnectError("connection refused", request=request)
        if self.renew_mode == "reject":
            return _error(401, "AUTHENTICATION_ERROR", "Refresh token expired")
        if self.renew_mode == "malformed":
            return _ok({"tokenType": "Bearer"})
        return _ok({"accessToken": self.issue(self.scoped_company)})

    def _switch(self, request: httpx.Request) -> httpx.Response:
        company_id = self._body(request).get("company_id")
        if not self.accessible(company_id):
            return _error(403, "COMPANY_ACCESS_DENIED", "No access to this company")
        self.scoped_company = company_id
        return _ok({"access_token": self.issue(company_id), "company_id": company_id})

    def _user(self) -> Dict[str, Any]:
        return {"id": self.user_id, "email": self.email, "fullName": self.full_name, "isActive": True}

    def _tenant(self, tenant_id: Optional[str]) -> Optional[Dict[str, Any]]:
        return next((t for t in self.tenants if t["id"] == tenant_id), None)

    def _switch_tenant(self, request: httpx.Request) -> httpx.Response:
        tenant = self._tenant(self._body(request).get("tenantId"))
        if tenant is None:
            return _error(403, "AUTHORIZATION_ERROR", "You don't have access to this tenant")
        if tenant["status"] not in ("ACTIVE", "TRIAL"):
            return _error(402, "SUBSCRIPTION_ERROR", "Tenant subscription is not active")

        self.tenant_id = tenant["id"]
        self.tenant_role = tenant["role"]
        self.scoped_company = None
        if self.tenant_id in self.tenant_directories:
            self.companies = self.tenant_directories[self.tenant_id]
        return _ok(
            {"accessToken": self.issue(), "tokenType": "Bearer", "expiresIn": 900, "activeTenant": tenant}
        )


# ══════════════════════════════════════════════════════════════════════════════
# FIXTURES
# ══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def fixtures_path() -> Path:
    """Chemin vers le dossier fixtures."""
    return Path(__file__).parent.parent / "fixtures"


@pytest.fixture
def client_config() -> ClientConfig:
    """Configuration client pointant sur le service simulé."""
    return ClientConfig(base_url=BASE_URL)


@pytest.fixture
def service() -> FakeIdentityService:
    """Service d'identité simulé."""
    return FakeIdentityService()


@pytest.fixture
def http_client(service: FakeIdentityService) -> httpx.AsyncClient:
    """Client httpx branché sur le service simulé."""
    return httpx.AsyncClient(transport=httpx.MockTransport(service.handle))


@pytest.fixture
def logger() -> StructuredLogger:
    """Logger capturant les entrées en mémoire."""
    return StructuredLogger("authcore.test")


@pytest.fixture
def signals(logger: StructuredLogger) -> SignalBus:
    return SignalBus(logger)


@pytest.fixture
def credential_factory() -> Callable[..., str]:
    """Fabrique de JWT de test."""
    return mint_credential


@pytest.fixture
def company_factory() -> Callable[..., Dict[str, Any]]:
    """Fabrique d'entrées d'annuaire."""
    return company_entry


@pytest.fixture
def make_core(
    client_config: ClientConfig,
    http_client: httpx.AsyncClient,
    logger: StructuredLogger,
) -> Callable[..., AuthCore]:
    """
    Fabrique d'AuthCore partageant le service simulé.

    Chaque appel correspond à un onglet (ou à un rechargement quand on
    réutilise les mêmes stockages).
    """

    def factory(storage=None, credential_storage=None) -> AuthCore:
        return create_auth_core(
            client_config,
            storage=storage if storage is not None else InMemoryStorage(),
            credential_storage=credential_storage,
            http_client=http_client,
            logger=logger,
        )

    return factory


@pytest.fixture
def core(make_core: Callable[..., AuthCore]) -> AuthCore:
    """AuthCore d'un onglet unique."""
    return make_core()
