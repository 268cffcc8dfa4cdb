from .auth_service import AuthService
from .cashier_service import CashierSession
from .catalog_service import CatalogService
from .customer_service import CustomerService
from .fx_service import FxService
from .metal_service import MetalService
from .operations_service import OperationsService
from .reporting_service import ReportingService
from .sales_service import CommitOutcome, SalesService
from .settings_service import SettingsService
from .stock_movement_service import StockMovementService

__all__ = [
    "AuthService",
    "CashierSession",
    "CatalogService",
    "CustomerService",
    "FxService",
    "MetalService",
    "OperationsService",
    "ReportingService",
    "CommitOutcome",
    "SalesService",
    "SettingsService",
    "StockMovementService",
]
