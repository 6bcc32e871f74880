# app/services/container.py
from typing import Optional

from app.core.config import VERIFICATION_ROLES
from app.db.store import DataStore
from app.integrations.auth_provider import AuthProvider
from app.integrations.storage import ObjectStore
from app.services.dashboard import DashboardService
from app.services.inventory import InventoryLedger
from app.services.loans import LoanRequestService
from app.services.profiles import ProfileService
from app.services.verification import AccountVerificationService


class Services:
    """All services wired to one store; lives on `app.state.services`."""

    def __init__(
        self,
        store: DataStore,
        auth_provider: Optional[AuthProvider] = None,
        object_store: Optional[ObjectStore] = None,
    ):
        self.store = store
        self.auth_provider = auth_provider
        self.object_store = object_store
        self.profiles = ProfileService(store)
        self.verification = AccountVerificationService(store, auth_provider, roles=VERIFICATION_ROLES)
        self.inventory = InventoryLedger(store, object_store)
        self.loans = LoanRequestService(store)
        self.dashboard = DashboardService(store, self.loans)

    async def aclose(self):
        if self.auth_provider is not None:
            await self.auth_provider.aclose()
        if self.object_store is not None:
            await self.object_store.aclose()
