DATA_DIR = "data"
DB_FILE_NAME = "ice_ops.db"
TABLE_SCHEMA_VERSION = "schema_version"
SCHEMA_VERSION = "3"

DEFAULT_TIMEZONE = "Asia/Bangkok"
DEFAULT_DB_TIMEOUT = 5.0
DEFAULT_PORT = 8080
DEFAULT_ENV = "development"
DEFAULT_LOG_LEVEL = "INFO"
DEV_SECRET_KEY = "ice-ops-dev-secret"

# ---- Ledger vocabularies ----
PAYMENT_CASH = "Cash"
PAYMENT_DEBIT = "Debit"
PAYMENT_CREDIT = "Credit"
PAYMENT_TYPES = (PAYMENT_CASH, PAYMENT_DEBIT, PAYMENT_CREDIT)

TX_SALE = "Sale"
TX_GIVEAWAY = "Giveaway"
TX_INTERNAL_USE = "Internal Use"
TRANSACTION_TYPES = (TX_SALE, TX_GIVEAWAY, TX_INTERNAL_USE)

LOAD_TYPES = ("initial", "reload")

STATUS_PENDING = "Pending"
STATUS_RECONCILED = "Reconciled"

# ---- Roles ----
ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_STAFF = "staff"
ROLE_ACCOUNTANT = "accountant"

WRITE_ROLES = (ROLE_ADMIN, ROLE_MANAGER, ROLE_STAFF)
READ_ROLES = WRITE_ROLES + (ROLE_ACCOUNTANT,)
OVERRIDE_ROLES = (ROLE_ADMIN, ROLE_MANAGER)
