from .errors import DomainError, NotFoundError, SummaryReconciledError

# ---------------- Directories ----------------
from .drivers_repo import DriversRepo, Driver
from .products_repo import ProductsRepo, Product
from .customers_repo import CustomersRepo, Customer
from .routes_repo import RoutesRepo

# ---------------- Driver ledger ----------------
from .loading_logs_repo import LoadingLogsRepo, group_by_batch
from .driver_summaries_repo import DriverSummariesRepo
from .driver_sales_repo import (
    DriverSalesRepo,
    BatchSalesResult,
    SaleRowResult,
    ItemRowResult,
)
from .driver_returns_repo import DriverReturnsRepo
from .reconciliation_repo import ReconciliationRepo

__all__ = [
    # Errors
    "DomainError",
    "NotFoundError",
    "SummaryReconciledError",
    # Directories
    "DriversRepo",
    "Driver",
    "ProductsRepo",
    "Product",
    "CustomersRepo",
    "Customer",
    "RoutesRepo",
    # Driver ledger
    "LoadingLogsRepo",
    "group_by_batch",
    "DriverSummariesRepo",
    "DriverSalesRepo",
    "BatchSalesResult",
    "SaleRowResult",
    "ItemRowResult",
    "DriverReturnsRepo",
    "ReconciliationRepo",
]
