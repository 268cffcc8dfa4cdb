from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from jpos.config import RuntimeConfig
from jpos.repositories.outbox_repo import OutboxRepository
from jpos.repositories.sqlite_repo import SqliteRepository
from jpos.services.auth_service import AuthService, LoginPolicy
from jpos.services.cashier_service import CashierSession
from jpos.services.catalog_service import CatalogService
from jpos.services.customer_service import CustomerService
from jpos.services.fx_service import FxService
from jpos.services.metal_service import MetalService
from jpos.services.operations_service import OperationsService
from jpos.services.reporting_service import ReportingService
from jpos.services.sales_service import SalesService
from jpos.services.settings_service import SettingsService
from jpos.services.stock_movement_service import StockMovementService


@dataclass(frozen=True)
class AppContainer:
    repo: SqliteRepository
    outbox: OutboxRepository
    settings: SettingsService
    fx: FxService
    catalog: CatalogService
    customers: CustomerService
    sales: SalesService
    movements: StockMovementService
    metal: MetalService
    reporting: ReportingService
    auth: AuthService
    operations: OperationsService

    def cashier_session(self, user=None) -> CashierSession:
        return CashierSession(self.catalog, self.customers, self.sales, self.fx, self.settings, user)


def build_container(db_path: Path | str, config: RuntimeConfig | None = None, outbox_path: Path | str | None = None) -> AppContainer:
    config = config or RuntimeConfig()
    repo = SqliteRepository(db_path)
    repo.init_db()
    outbox = OutboxRepository(outbox_path or Path(db_path).with_name("outbox.db"))
    outbox.init_db()

    settings = SettingsService(repo)
    fx = FxService(repo, settings)
    sales = SalesService(repo, outbox=outbox, fallback=config.sale_fallback)
    auth = AuthService(repo, LoginPolicy(session_ttl_minutes=config.session_ttl_minutes))

    return AppContainer(
        repo=repo,
        outbox=outbox,
        settings=settings,
        fx=fx,
        catalog=CatalogService(repo),
        customers=CustomerService(repo),
        sales=sales,
        movements=StockMovementService(repo),
        metal=MetalService(repo),
        reporting=ReportingService(repo),
        auth=auth,
        operations=OperationsService(repo, db_path=db_path, outbox=outbox),
    )
