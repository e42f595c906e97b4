"""
Tests unitaires SessionManager

Login/logout, renouvellement single-flight, re-scoping société,
tenants et rechargement de l'identité.
Service distant simulé (httpx.MockTransport, voir conftest).
"""

import asyncio

import httpx
import pytest

from authcore.auth import (
    AccountRequestFailed,
    AccountLocked,
    CredentialStore,
    InvalidCredentials,
    ISessionManager,
    LoginFailed,
    RenewalFailed,
    RescopeFailed,
    SessionManager,
    SessionState,
    SessionStateError,
    TenantInfo,
)
from authcore.core.interfaces import Signal
from authcore.network.transport import ApiTransport


# ══════════════════════════════════════════════════════════════════════════════
# FIXTURES
# ══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def transport(client_config, http_client, logger):
    return ApiTransport(client_config, client=http_client, logger=logger)


@pytest.fixture
def store():
    return CredentialStore()


@pytest.fixture
def session(client_config, transport, store, signals, logger):
    return SessionManager(client_config, transport, store, signals, logger)


@pytest.fixture
def emitted(signals):
    """Signaux émis, dans l'ordre."""
    events = []
    for signal in Signal:
        signals.subscribe(signal, lambda _s=signal, **payload: events.append((_s, payload)))
    return events


# ══════════════════════════════════════════════════════════════════════════════
# TESTS LOGIN
# ══════════════════════════════════════════════════════════════════════════════


class TestLogin:
    """Authentification."""

    def test_implements_interface(self, session):
        assert isinstance(session, ISessionManager)
        assert session.state == SessionState.ANONYMOUS
        assert not session.is_authenticated

    @pytest.mark.asyncio
    async def test_login_success(self, session, service, store, logger, emitted):
        result = await session.login(service.email, service.password)

        assert session.state == SessionState.AUTHENTICATED
        assert result.identity.identity_id == "user-1"
        assert result.identity.display_name == "Budi Santoso"
        assert store.read() == result.credential
        assert session.claims.tenant_id == "tenant-1"
        assert logger.info("After login").tenant_id == "tenant-1"

        states = [(p["previous"], p["current"]) for s, p in emitted if s == Signal.SESSION_STATE_CHANGED]
        assert states == [
            (SessionState.ANONYMOUS, SessionState.AUTHENTICATING),
            (SessionState.AUTHENTICATING, SessionState.AUTHENTICATED),
        ]

    @pytest.mark.asyncio
    async def test_login_sends_identifier_and_secret(self, session, service):
        await session.login(service.email, service.password)

        request = service.requests_to("/auth/login")[0]
        assert request.method == "POST"
        assert b'"email"' in request.content

    @pytest.mark.asyncio
    async def test_invalid_credentials(self, session, service, store):
        with pytest.raises(InvalidCredentials):
            await session.login(service.email, "wrong")

        assert session.state == SessionState.ANONYMOUS
        assert store.read() is None

    @pytest.mark.asyncio
    async def test_empty_secret_rejected_locally(self, session, service):
        with pytest.raises(InvalidCredentials):
            await session.login(service.email, "")

        assert service.count("/auth/login") == 0

    @pytest.mark.asyncio
    async def test_account_locked(self, session, service):
        service.locked = True

        with pytest.raises(AccountLocked) as exc:
            await session.login(service.email, service.password)

        assert exc.value.retry_after == 900
        assert exc.value.code == "ACCOUNT_LOCKED"
        assert session.state == SessionState.ANONYMOUS

    @pytest.mark.asyncio
    async def test_login_transport_failure(self, client_config, store, signals, logger):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        session = SessionManager(client_config, ApiTransport(client_config, client=client), store, signals, logger)

        with pytest.raises(LoginFailed) as exc:
            await session.login("a@example.com", "secret")

        assert exc.value.code == "TRANSPORT_ERROR"
        assert session.state == SessionState.ANONYMOUS

    @pytest.mark.asyncio
    async def test_login_replaces_existing_session(self, session, service, emitted):
        await session.login(service.email, service.password)
        first = session.credential

        await session.login(service.email, service.password)

        assert session.credential != first
        assert session.state == SessionState.AUTHENTICATED
        reasons = [p["reason"] for s, p in emitted if s == Signal.SIGNED_OUT]
        assert reasons == ["replaced"]

    @pytest.mark.asyncio
    async def test_concurrent_login_rejected(self, session, service):
        service.delays["/auth/login"] = 0.05
        first = asyncio.ensure_future(session.login(service.email, service.password))
        await asyncio.sleep(0.01)

        with pytest.raises(SessionStateError):
            await session.login(service.email, service.password)

        await first
        assert session.state == SessionState.AUTHENTICATED


# ══════════════════════════════════════════════════════════════════════════════
# TESTS LOGOUT
# ══════════════════════════════════════════════════════════════════════════════


class TestLogout:
    """Fermeture de session."""

    @pytest.mark.asyncio
    async def test_logout_clears_everything(self, session, service, store, transport, logger, emitted):
        await session.login(service.email, service.password)
        assert transport.csrf_token() == service.csrf

        await session.logout()

        assert session.state == SessionState.ANONYMOUS
        assert session.identity is None
        assert store.read() is None
        assert transport.csrf_token() is None
        assert service.count("/auth/logout") == 1
        assert logger.info("After logout").tenant_id == "anonymous"
        assert [p["reason"] for s, p in emitted if s == Signal.SIGNED_OUT] == ["logout"]

    @pytest.mark.asyncio
    async def test_logout_survives_remote_failure(self, session, service, store, logger):
        await session.login(service.email, service.password)
        service.logout_mode = "transport_error"

        await session.logout()

        assert session.state == SessionState.ANONYMOUS
        assert store.read() is None
        assert any(e.message == "Remote logout failed" for e in logger.get_entries())

    @pytest.mark.asyncio
    async def test_logout_when_anonymous(self, session, service, emitted):
        await session.logout()

        assert service.count("/auth/logout") == 0
        assert emitted == []


# ══════════════════════════════════════════════════════════════════════════════
# TESTS RENOUVELLEMENT
# ══════════════════════════════════════════════════════════════════════════════


class TestRenewal:
    """Renouvellement single-flight."""

    @pytest.mark.asyncio
    async def test_renew_replaces_credential(self, session, service):
        await session.login(service.email, service.password)
        before = session.credential

        renewed = await session.renew()

        assert renewed != before
        assert session.credential == renewed
        assert session.state == SessionState.AUTHENTICATED
        assert not session.renewal_in_flight

    @pytest.mark.asyncio
    async def test_concurrent_renewals_share_one_call(self, session, service):
        await session.login(service.email, service.password)
        service.delays["/auth/renew"] = 0.05

        results = await asyncio.gather(*(session.renew() for _ in range(5)))

        assert service.count("/auth/renew") == 1
        assert len(set(results)) == 1

    @pytest.mark.asyncio
    async def test_state_refreshing_during_renewal(self, session, service):
        await session.login(service.email, service.password)
        service.delays["/auth/renew"] = 0.05

        task = asyncio.ensure_future(session.renew())
        await asyncio.sleep(0.01)

        assert session.state == SessionState.REFRESHING
        assert session.renewal_in_flight
        assert session.is_authenticated
        await task

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_renewal(self, session, service):
        await session.login(service.email, service.password)
        service.delays["/auth/renew"] = 0.05

        first = asyncio.ensure_future(session.renew())
        second = asyncio.ensure_future(session.renew())
        await asyncio.sleep(0.01)
        first.cancel()

        credential = await second

        assert session.credential == credential
        assert service.count("/auth/renew") == 1

    @pytest.mark.asyncio
    async def test_renew_without_session(self, session):
        with pytest.raises(RenewalFailed) as exc:
            await session.renew()

        assert exc.value.code == "NO_SESSION"

    @pytest.mark.parametrize(
        "mode, code",
        [("reject", "AUTHENTICATION_ERROR"), ("transport_error", "RENEWAL_TRANSPORT"), ("malformed", "RENEWAL_MALFORMED")],
    )
    @pytest.mark.asyncio
    async def test_renewal_failure_signs_out(self, session, service, store, emitted, mode, code):
        await session.login(service.email, service.password)
        service.renew_mode = mode

        with pytest.raises(RenewalFailed) as exc:
            await session.renew()

        assert exc.value.code == code
        assert session.state == SessionState.ANONYMOUS
        assert store.read() is None
        assert [p["reason"] for s, p in emitted if s == Signal.SIGNED_OUT] == ["session_expired"]

    @pytest.mark.asyncio
    async def test_all_waiters_see_failure(self, session, service):
        await session.login(service.email, service.password)
        service.renew_mode = "reject"
        service.delays["/auth/renew"] = 0.02

        results = await asyncio.gather(*(session.renew() for _ in range(3)), return_exceptions=True)

        assert all(isinstance(r, RenewalFailed) for r in results)
        assert service.count("/auth/renew") == 1

    @pytest.mark.asyncio
    async def test_ensure_fresh_returns_current(self, session, service):
        await session.login(service.email, service.password)

        assert await session.ensure_fresh() == session.credential
        assert service.count("/auth/renew") == 0

    @pytest.mark.asyncio
    async def test_ensure_fresh_renews_expired(self, client_config, transport, signals, logger, service, credential_factory):
        store = CredentialStore()
        store.save(credential_factory(ttl=10))
        session = SessionManager(client_config, transport, store, signals, logger)

        credential = await session.ensure_fresh()

        assert service.count("/auth/renew") == 1
        assert store.read() == credential

    @pytest.mark.asyncio
    async def test_sign_out_during_renewal(self, session, service, store):
        """Une fermeture pendant le renouvellement n'est pas annulée par sa réponse."""
        await session.login(service.email, service.password)
        service.delays["/auth/renew"] = 0.05

        task = asyncio.ensure_future(session.renew())
        await asyncio.sleep(0.01)
        session.sign_out("logout")

        with pytest.raises(RenewalFailed) as exc:
            await task

        assert exc.value.code == "SESSION_CLOSED"
        assert session.state == SessionState.ANONYMOUS
        assert store.read() is None


# ══════════════════════════════════════════════════════════════════════════════
# TESTS RE-SCOPING
# ══════════════════════════════════════════════════════════════════════════════


class TestRescope:
    """Credential scopé sur une société."""

    @pytest.mark.asyncio
    async def test_rescope_saves_scoped_credential(self, session, service):
        await session.login(service.email, service.password)

        scoped = await session.rescope("company-b")

        assert session.credential == scoped
        assert session.claims.company_id == "company-b"

    @pytest.mark.asyncio
    async def test_rescope_rejected(self, session, service):
        await session.login(service.email, service.password)
        before = session.credential

        with pytest.raises(RescopeFailed) as exc:
            await session.rescope("company-z")

        assert exc.value.status_code == 403
        assert exc.value.code == "COMPANY_ACCESS_DENIED"
        assert session.credential == before

    @pytest.mark.asyncio
    async def test_rescope_renews_on_401(self, session, service):
        await session.login(service.email, service.password)
        service.invalidate_tokens()

        await session.rescope("company-a")

        assert service.count("/auth/renew") == 1
        assert service.count("/auth/switch-company") == 2
        assert session.claims.company_id == "company-a"

    @pytest.mark.asyncio
    async def test_rescope_empty_id(self, session):
        with pytest.raises(ValueError):
            await session.rescope("")

    @pytest.mark.asyncio
    async def test_rescope_without_session(self, session):
        with pytest.raises(RenewalFailed):
            await session.rescope("company-a")


# ══════════════════════════════════════════════════════════════════════════════
# TESTS TENANTS ET IDENTITÉ
# ══════════════════════════════════════════════════════════════════════════════


class TestTenants:
    """Liste des tenants, changement de tenant, identité courante."""

    @pytest.mark.asyncio
    async def test_list_tenants(self, session, service):
        await session.login(service.email, service.password)

        tenants = await session.list_tenants()

        assert tenants == [
            TenantInfo(tenant_id="tenant-1", name="Tenant One", status="ACTIVE", role="STAFF"),
            TenantInfo(tenant_id="tenant-2", name="Tenant Two", status="ACTIVE", role="OWNER"),
        ]
        assert all(t.active for t in tenants)

    @pytest.mark.asyncio
    async def test_list_tenants_renews_on_401(self, session, service):
        await session.login(service.email, service.password)
        service.invalidate_tokens()

        tenants = await session.list_tenants()

        assert len(tenants) == 2
        assert service.count("/auth/renew") == 1
        assert service.count("/auth/tenants") == 2

    @pytest.mark.asyncio
    async def test_list_tenants_malformed(self, session, service):
        await session.login(service.email, service.password)
        service.tenants = [{"name": "no id"}]

        with pytest.raises(AccountRequestFailed) as exc:
            await session.list_tenants()

        assert exc.value.code == "TENANTS_MALFORMED"

    @pytest.mark.asyncio
    async def test_switch_tenant(self, session, service, emitted):
        await session.login(service.email, service.password)
        await session.rescope("company-a")
        emitted.clear()

        credential = await session.switch_tenant("tenant-2")

        assert session.credential == credential
        assert session.claims.tenant_id == "tenant-2"
        assert session.claims.company_id is None
        assert session.state == SessionState.AUTHENTICATED
        assert emitted == [(Signal.TENANT_CHANGED, {"previous": "tenant-1", "current": "tenant-2"})]

        body = service.requests_to("/auth/switch-tenant")[-1].content
        assert b'"tenantId"' in body

    @pytest.mark.asyncio
    async def test_switch_tenant_rejected(self, session, service, emitted):
        await session.login(service.email, service.password)
        before = session.credential
        emitted.clear()

        with pytest.raises(AccountRequestFailed) as exc:
            await session.switch_tenant("tenant-9")

        assert exc.value.status_code == 403
        assert session.credential == before
        assert emitted == []

    @pytest.mark.asyncio
    async def test_switch_tenant_empty_id(self, session):
        with pytest.raises(ValueError):
            await session.switch_tenant("")

    @pytest.mark.asyncio
    async def test_refresh_identity(self, session, service):
        await session.login(service.email, service.password)
        service.full_name = "Budi S."

        identity = await session.refresh_identity()

        assert identity.display_name == "Budi S."
        assert session.identity == identity

    @pytest.mark.asyncio
    async def test_refresh_identity_failure_keeps_identity(self, session, service):
        await session.login(service.email, service.password)
        before = session.identity
        service.failures["/auth/me"] = (500, "INTERNAL_ERROR")

        with pytest.raises(AccountRequestFailed):
            await session.refresh_identity()

        assert session.identity == before

    @pytest.mark.asyncio
    async def test_refresh_identity_without_session(self, session):
        with pytest.raises(RenewalFailed):
            await session.refresh_identity()


# ══════════════════════════════════════════════════════════════════════════════
# TESTS RESTAURATION
# ══════════════════════════════════════════════════════════════════════════════


class TestRestore:
    """Rechargement avec un credential persisté."""

    def test_restored_session(self, client_config, transport, signals, logger, credential_factory):
        store = CredentialStore()
        store.save(credential_factory(user_id="u-5", tenant_id="t-5"))

        session = SessionManager(client_config, transport, store, signals, logger)

        assert session.state == SessionState.AUTHENTICATED
        assert session.identity.identity_id == "u-5"
        assert logger.info("Restored").tenant_id == "t-5"
