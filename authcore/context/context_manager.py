"""
AUTHCORE - Context Manager

Sélection, persistance et changement atomique de la société active,
synchronisée entre onglets via le stockage client partagé.
"""

import asyncio
from typing import Any, List, Optional

from ..auth.interfaces import SessionState
from ..auth.session_manager import SessionManager
from ..core.errors import AuthCoreError
from ..core.interfaces import ClientConfig, Signal
from ..core.signals import SignalBus
from ..directory.interfaces import AccessibleCompany, IDirectoryClient
from ..logging.interfaces import IStructuredLogger
from ..permissions.interfaces import CompanyAssignment, Role, TenantAssignment
from ..permissions.permission_engine import PermissionEngine, resolve_effective_role
from ..storage.interfaces import IClientStorage, StorageEvent
from .interfaces import ContextOutcome, ContextStatus, IContextManager


class UnknownOrInactiveCompany(AuthCoreError):
    """Société absente de la liste accessible, ou inactive."""

    def __init__(self, company_id: Optional[str]) -> None:
        self.company_id = company_id
        super().__init__(
            f"Company {company_id!r} is not accessible or not active",
            code="UNKNOWN_OR_INACTIVE_COMPANY",
        )


class ContextManager(IContextManager):
    """
    Gestionnaire du contexte actif (un par onglet).

    Seul composant autorisé à modifier la société active. La valeur en
    mémoire, la valeur persistée et les signaux sont mis à jour dans un
    même bloc synchrone: aucune lecture ne peut observer un état partiel.

    Example:
        context = ContextManager(config, session, directory, storage, signals, logger)
        await context.initialize()
        await context.switch("company-b")
        context.permissions().can("team.invite")
    """

    def __init__(
        self,
        config: ClientConfig,
        session: SessionManager,
        directory: IDirectoryClient,
        storage: IClientStorage,
        signals: SignalBus,
        logger: IStructuredLogger,
    ) -> None:
        self._config = config
        self._session = session
        self._directory = directory
        self._storage = storage
        self._signals = signals
        self._logger = logger

        self._active: Optional[str] = None
        self._companies: List[AccessibleCompany] = []
        self._status = ContextStatus.UNINITIALIZED
        self._persisted_key: Optional[str] = None

        self._switch_lock = asyncio.Lock()
        self._init_task: Optional["asyncio.Task[ContextOutcome]"] = None
        self._reconcile_task: Optional["asyncio.Task[None]"] = None

        self._unsubscribe_storage = storage.subscribe(self._on_storage_event)
        self._unsubscribe_signed_out = signals.subscribe(Signal.SIGNED_OUT, self._on_signed_out)
        self._unsubscribe_tenant = signals.subscribe(Signal.TENANT_CHANGED, self._on_tenant_changed)

    # ──────────────────────────────────────────────────────────────────────────
    # Lecture
    # ──────────────────────────────────────────────────────────────────────────

    @property
    def status(self) -> ContextStatus:
        return self._status

    def get_active(self) -> Optional[str]:
        return self._active

    def get_active_company(self) -> Optional[AccessibleCompany]:
        return self._find(self._active)

    def companies(self) -> List[AccessibleCompany]:
        return list(self._companies)

    # ──────────────────────────────────────────────────────────────────────────
    # Initialisation / resynchronisation
    # ──────────────────────────────────────────────────────────────────────────

    async def initialize(self) -> ContextOutcome:
        """
        Résout la société active (single-flight).

        Candidat préféré: la valeur en mémoire, sinon la valeur persistée.
        Conservé s'il est présent et actif, sinon première société active,
        sinon statut NO_ACCESSIBLE_COMPANY.

        Raises:
            DirectoryError / TransportError / RenewalFailed: contexte inchangé
        """
        if self._init_task is None:
            task = asyncio.get_running_loop().create_task(self._run_initialize())
            task.add_done_callback(_consume_result)
            self._init_task = task
        return await asyncio.shield(self._init_task)

    async def resync(self) -> ContextOutcome:
        """Recharge l'annuaire et corrige la société active."""
        return await self.initialize()

    async def _run_initialize(self) -> ContextOutcome:
        try:
            async with self._switch_lock:
                previous = self._active
                companies = await self._directory.list_accessible_companies()

                if self._session.state == SessionState.ANONYMOUS:
                    return ContextOutcome(previous, self._active, self._status)

                target = self._choose(companies)
                if target is None:
                    self._companies = companies
                    self._logger.warn("No accessible company", company_count=len(companies))
                    return self._commit(None, ContextStatus.NO_ACCESSIBLE_COMPANY)

                claims = self._session.claims
                needs_rescope = claims is None or claims.company_id != target.company_id
                revoked = previous is not None and not _is_valid(companies, previous)

                if revoked:
                    # Société active retirée: corrigée avant toute attente
                    self._logger.warn(
                        "Active company no longer accessible",
                        previous=previous,
                        company_id=target.company_id,
                    )
                    self._companies = companies
                    outcome = self._commit(target.company_id, ContextStatus.READY)
                    if needs_rescope:
                        await self._session.rescope(target.company_id)
                    return outcome

                if needs_rescope:
                    await self._session.rescope(target.company_id)

                self._companies = companies
                return self._commit(target.company_id, ContextStatus.READY)
        finally:
            self._init_task = None

    def _choose(self, companies: List[AccessibleCompany]) -> Optional[AccessibleCompany]:
        candidate = self._active or self._read_persisted()
        if candidate is not None:
            for company in companies:
                if company.company_id == candidate and company.active:
                    return company
        return next((c for c in companies if c.active), None)

    # ──────────────────────────────────────────────────────────────────────────
    # Switch
    # ──────────────────────────────────────────────────────────────────────────

    async def switch(self, company_id: str) -> ContextOutcome:
        """
        Change de société active.

        Processus:
            1. Valide la cible contre la dernière liste connue
            2. Re-scope le credential (distant)
            3. Re-valide puis commit synchrone (mémoire, stockage, signaux)

        Raises:
            UnknownOrInactiveCompany: Cible invalide, aucune mutation
            RescopeFailed / TransportError: aucune mutation
            StorageFileError: persistance impossible, aucune mutation
        """
        async with self._switch_lock:
            if self._find_valid(company_id) is None:
                raise UnknownOrInactiveCompany(company_id)

            if company_id == self._active:
                return ContextOutcome(company_id, company_id, self._status)

            await self._session.rescope(company_id)

            try:
                # La liste a pu changer pendant l'attente
                if self._find_valid(company_id) is None:
                    raise UnknownOrInactiveCompany(company_id)
                outcome = self._commit(company_id, ContextStatus.READY)
            except AuthCoreError:
                await self._restore_scope()
                raise

            self._logger.info("Company switched", previous=outcome.previous, company_id=company_id)
            return outcome

    async def switch_tenant(self, tenant_id: str) -> ContextOutcome:
        """
        Change de tenant puis résout la société active du nouveau tenant.

        Le signal TENANT_CHANGED vide le contexte et l'annuaire en cache
        avant la nouvelle initialisation.

        Raises:
            AccountRequestFailed: Tenant refusé, contexte inchangé
            DirectoryError / TransportError: contexte vide (UNINITIALIZED)
        """
        async with self._switch_lock:
            await self._session.switch_tenant(tenant_id)
        return await self.initialize()

    async def _restore_scope(self) -> None:
        """Re-scope le credential sur la société active après un switch avorté."""
        company_id = self._active
        claims = self._session.claims
        if company_id is None or claims is None or claims.company_id == company_id:
            return
        if self._session.state != SessionState.AUTHENTICATED:
            return

        try:
            await self._session.rescope(company_id)
        except AuthCoreError as e:
            self._logger.error(
                "Could not restore company scope",
                company_id=company_id,
                error=str(e),
                error_type=type(e).__name__,
            )

    def _commit(self, company_id: Optional[str], status: ContextStatus) -> ContextOutcome:
        """
        Applique la société active. Aucun await: atomique pour la boucle.

        La valeur est persistée avant toute mutation en mémoire: un échec
        du stockage laisse le contexte intact.
        """
        previous = self._active

        key = self._storage_key()
        if key is not None:
            if company_id is None:
                self._storage.remove(key)
            else:
                self._storage.set(key, company_id)

        self._active = company_id
        self._status = status
        self._logger.set_default_company(company_id)

        if previous != company_id:
            self._signals.emit(Signal.CACHE_INVALIDATED, company_id=company_id, previous=previous)
            self._signals.emit(Signal.COMPANY_CHANGED, previous=previous, current=company_id)
        if status == ContextStatus.NO_ACCESSIBLE_COMPANY:
            self._signals.emit(Signal.NO_ACCESSIBLE_COMPANY)

        return ContextOutcome(previous, company_id, status)

    # ──────────────────────────────────────────────────────────────────────────
    # Rôle et permissions
    # ──────────────────────────────────────────────────────────────────────────

    def effective_role(self) -> Role:
        """
        Rôle effectif dans la société active.

        Tier 1 connu par le rôle porté par le credential, ou par une entrée
        d'annuaire d'accès niveau tenant.
        """
        claims = self._session.claims
        tenant_id = claims.tenant_id if claims else None

        tenant_assignments: List[TenantAssignment] = []
        company_assignments: List[CompanyAssignment] = []

        claim_role = Role.parse(claims.role) if claims else None
        if tenant_id and claim_role is not None and claim_role.tier == 1:
            tenant_assignments.append(TenantAssignment(tenant_id, claim_role))

        for company in self._companies:
            role = Role.parse(company.role)
            if company.tenant_level and tenant_id:
                tier_one = role if role is not None and role.tier == 1 else Role.TENANT_ADMIN
                tenant_assignments.append(TenantAssignment(company.tenant_id or tenant_id, tier_one))
            elif role is not None and role.tier == 2:
                company_assignments.append(CompanyAssignment(company.company_id, role))

        return resolve_effective_role(tenant_id, self._active, tenant_assignments, company_assignments)

    def permissions(self) -> PermissionEngine:
        return PermissionEngine(self.effective_role())

    # ──────────────────────────────────────────────────────────────────────────
    # Persistance et synchronisation inter-onglets
    # ──────────────────────────────────────────────────────────────────────────

    def _storage_key(self) -> Optional[str]:
        claims = self._session.claims
        identity = self._session.identity
        tenant_id = claims.tenant_id if claims else None
        identity_id = (claims.identity_id if claims else None) or (identity.identity_id if identity else None)
        if not tenant_id or not identity_id:
            return self._persisted_key
        self._persisted_key = f"{self._config.storage_key_prefix}:{tenant_id}:{identity_id}"
        return self._persisted_key

    def _read_persisted(self) -> Optional[str]:
        key = self._storage_key()
        return self._storage.get(key) if key else None

    def _on_storage_event(self, event: StorageEvent) -> None:
        key = self._storage_key()
        if key is None or event.key != key:
            return

        if event.removed:
            # Déconnexion dans un autre onglet
            if self._active is not None:
                previous = self._active
                self._active = None
                self._status = ContextStatus.UNINITIALIZED
                self._logger.set_default_company(None)
                self._emit_cleared(previous)
            return

        company_id = event.new_value
        if company_id == self._active:
            return

        if self._find_valid(company_id) is not None:
            self._adopt(company_id)
            claims = self._session.claims
            if claims is not None and claims.company_id == company_id:
                return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._logger.warn("No event loop to reconcile external selection", company_id=company_id)
            return
        self._reconcile_task = loop.create_task(self._reconcile(company_id))

    def _adopt(self, company_id: str) -> None:
        """Adopte une sélection faite dans un autre onglet (sans ré-écriture)."""
        previous = self._active
        self._active = company_id
        self._status = ContextStatus.READY
        self._logger.set_default_company(company_id)
        self._logger.info("Company adopted from another tab", previous=previous, company_id=company_id)
        self._signals.emit(Signal.CACHE_INVALIDATED, company_id=company_id, previous=previous)
        self._signals.emit(Signal.COMPANY_CHANGED, previous=previous, current=company_id)

    async def _reconcile(self, company_id: str) -> None:
        try:
            if self._find_valid(company_id) is None:
                companies = await self._directory.list_accessible_companies()
                key = self._storage_key()
                if key is None or self._storage.get(key) != company_id:
                    return
                self._companies = companies
                if self._find_valid(company_id) is None:
                    self._logger.warn("Ignoring inaccessible company from another tab", company_id=company_id)
                    return
                self._adopt(company_id)

            claims = self._session.claims
            if self._session.state == SessionState.AUTHENTICATED and claims and claims.company_id != company_id:
                await self._session.rescope(company_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._logger.error(
                "Cross-tab reconciliation failed",
                company_id=company_id,
                error=str(e),
                error_type=type(e).__name__,
            )

    def _on_signed_out(self, **_: Any) -> None:
        key = self._persisted_key
        previous = self._reset()
        if key is not None:
            self._storage.remove(key)
        self._emit_cleared(previous)

    def _on_tenant_changed(self, **_: Any) -> None:
        # La sélection persistée de l'ancien tenant est conservée
        self._emit_cleared(self._reset())

    def _reset(self) -> Optional[str]:
        """Vide le contexte en mémoire; retourne la société précédente."""
        previous = self._active

        self._active = None
        self._companies = []
        self._status = ContextStatus.UNINITIALIZED
        self._persisted_key = None
        self._logger.set_default_company(None)

        if self._reconcile_task is not None and not self._reconcile_task.done():
            self._reconcile_task.cancel()
        self._reconcile_task = None
        return previous

    def _emit_cleared(self, previous: Optional[str]) -> None:
        if previous is not None:
            self._signals.emit(Signal.CACHE_INVALIDATED, company_id=None, previous=previous)
            self._signals.emit(Signal.COMPANY_CHANGED, previous=previous, current=None)

    # ──────────────────────────────────────────────────────────────────────────
    # Helpers
    # ──────────────────────────────────────────────────────────────────────────

    def _find(self, company_id: Optional[str]) -> Optional[AccessibleCompany]:
        if company_id is None:
            return None
        return next((c for c in self._companies if c.company_id == company_id), None)

    def _find_valid(self, company_id: Optional[str]) -> Optional[AccessibleCompany]:
        company = self._find(company_id)
        return company if company is not None and company.active else None

    def close(self) -> None:
        """Détache les abonnements (fermeture de l'onglet)."""
        self._unsubscribe_storage()
        self._unsubscribe_signed_out()
        self._unsubscribe_tenant()
        if self._reconcile_task is not None and not self._reconcile_task.done():
            self._reconcile_task.cancel()


def _consume_result(task: "asyncio.Task[ContextOutcome]") -> None:
    if not task.cancelled():
        task.exception()


def _is_valid(companies: List[AccessibleCompany], company_id: str) -> bool:
    return any(c.company_id == company_id and c.active for c in companies)
