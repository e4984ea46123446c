from pathlib import Path
import sqlite3

from ..utils.loggers import get_logger

_log = get_logger(__name__)

SQL = r"""
PRAGMA foreign_keys = ON;

/* ======================== DIRECTORIES ======================== */

/* -------- users -------- */
CREATE TABLE IF NOT EXISTS users (
    user_id    INTEGER PRIMARY KEY AUTOINCREMENT,
    username   TEXT UNIQUE NOT NULL,
    full_name  TEXT NOT NULL,
    role       TEXT NOT NULL DEFAULT 'staff'
               CHECK (role IN ('admin','manager','staff','accountant','driver')),
    is_active  INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1)),
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

/* -------- drivers -------- */
CREATE TABLE IF NOT EXISTS drivers (
    driver_id  INTEGER PRIMARY KEY AUTOINCREMENT,
    first_name TEXT NOT NULL,
    last_name  TEXT NOT NULL DEFAULT '',
    phone      TEXT,
    is_active  INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1))
);

/* -------- routes -------- */
CREATE TABLE IF NOT EXISTS delivery_routes (
    route_id    INTEGER PRIMARY KEY AUTOINCREMENT,
    route_name  TEXT UNIQUE NOT NULL,
    description TEXT,
    is_active   INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1))
);

/* -------- products -------- */
CREATE TABLE IF NOT EXISTS products (
    product_id         INTEGER PRIMARY KEY AUTOINCREMENT,
    product_name       TEXT NOT NULL,
    default_unit_price NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(default_unit_price AS REAL) >= 0),
    unit_of_measure    TEXT NOT NULL DEFAULT 'bag',
    is_active          INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1))
);

/* -------- customers -------- */
CREATE TABLE IF NOT EXISTS customers (
    customer_id   INTEGER PRIMARY KEY AUTOINCREMENT,
    customer_name TEXT NOT NULL,
    phone         TEXT,
    address       TEXT,
    is_active     INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1))
);

/* price history: latest effective_date wins */
CREATE TABLE IF NOT EXISTS customer_prices (
    price_id        INTEGER PRIMARY KEY AUTOINCREMENT,
    customer_id     INTEGER NOT NULL,
    product_id      INTEGER NOT NULL,
    unit_price      NUMERIC NOT NULL CHECK (CAST(unit_price AS REAL) >= 0),
    effective_date  DATE NOT NULL,
    reason          TEXT,
    set_by_user_id  INTEGER,
    created_at      TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (customer_id)    REFERENCES customers(customer_id) ON DELETE CASCADE,
    FOREIGN KEY (product_id)     REFERENCES products(product_id),
    FOREIGN KEY (set_by_user_id) REFERENCES users(user_id)
);
CREATE INDEX IF NOT EXISTS idx_customer_prices_lookup
ON customer_prices(customer_id, product_id, effective_date);

CREATE TABLE IF NOT EXISTS customer_route_assignments (
    assignment_id     INTEGER PRIMARY KEY AUTOINCREMENT,
    customer_id       INTEGER NOT NULL,
    route_id          INTEGER NOT NULL,
    route_sequence    INTEGER NOT NULL DEFAULT 0,
    last_sale_date    DATE,
    total_sales_count INTEGER NOT NULL DEFAULT 0,
    is_active         INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1)),
    created_by        INTEGER,
    updated_at        TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (customer_id, route_id),
    FOREIGN KEY (customer_id) REFERENCES customers(customer_id) ON DELETE CASCADE,
    FOREIGN KEY (route_id)    REFERENCES delivery_routes(route_id) ON DELETE CASCADE,
    FOREIGN KEY (created_by)  REFERENCES users(user_id)
);

/* -------- reference data -------- */
CREATE TABLE IF NOT EXISTS loss_reasons (
    loss_reason_id     INTEGER PRIMARY KEY AUTOINCREMENT,
    reason_description TEXT UNIQUE NOT NULL,
    is_active          INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1))
);

CREATE TABLE IF NOT EXISTS packaging_types (
    packaging_type_id INTEGER PRIMARY KEY AUTOINCREMENT,
    type_name         TEXT UNIQUE NOT NULL,
    description       TEXT,
    is_active         INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1))
);

/* ======================== DRIVER LEDGER ======================== */

/* one row per (batch, product); load_batch_id is minted on insert */
CREATE TABLE IF NOT EXISTS loading_logs (
    loading_log_id  INTEGER PRIMARY KEY AUTOINCREMENT,
    load_batch_id   TEXT NOT NULL,
    driver_id       INTEGER NOT NULL,
    route_id        INTEGER,
    product_id      INTEGER NOT NULL,
    quantity_loaded NUMERIC NOT NULL CHECK (CAST(quantity_loaded AS REAL) > 0),
    load_type       TEXT NOT NULL DEFAULT 'initial' CHECK (load_type IN ('initial','reload')),
    load_timestamp  TEXT NOT NULL,
    load_date       DATE NOT NULL,
    area_manager_id INTEGER,
    notes           TEXT,
    created_at      TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (driver_id)       REFERENCES drivers(driver_id),
    FOREIGN KEY (route_id)        REFERENCES delivery_routes(route_id),
    FOREIGN KEY (product_id)      REFERENCES products(product_id),
    FOREIGN KEY (area_manager_id) REFERENCES users(user_id)
);
CREATE INDEX IF NOT EXISTS idx_loading_logs_batch ON loading_logs(load_batch_id);
CREATE INDEX IF NOT EXISTS idx_loading_logs_driver_date ON loading_logs(driver_id, load_date);

CREATE TABLE IF NOT EXISTS driver_daily_summaries (
    summary_id                       INTEGER PRIMARY KEY AUTOINCREMENT,
    driver_id                        INTEGER NOT NULL,
    sale_date                        DATE NOT NULL,
    route_id                         INTEGER,
    area_manager_id                  INTEGER,
    last_updated_by_user_id          INTEGER,
    total_cash_sales_value           NUMERIC NOT NULL DEFAULT 0,
    total_new_credit_sales_value     NUMERIC NOT NULL DEFAULT 0,
    total_other_payment_sales_value  NUMERIC NOT NULL DEFAULT 0,
    total_cash_collected_from_driver NUMERIC,
    cash_variance                    NUMERIC,
    reconciliation_status            TEXT NOT NULL DEFAULT 'Pending'
                                     CHECK (reconciliation_status IN ('Pending','Reconciled')),
    reconciliation_notes             TEXT,
    reconciled_at                    TIMESTAMP,
    created_at                       TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at                       TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (driver_id, sale_date),
    FOREIGN KEY (driver_id)               REFERENCES drivers(driver_id),
    FOREIGN KEY (route_id)                REFERENCES delivery_routes(route_id),
    FOREIGN KEY (area_manager_id)         REFERENCES users(user_id),
    FOREIGN KEY (last_updated_by_user_id) REFERENCES users(user_id)
);

CREATE TABLE IF NOT EXISTS driver_sales (
    sale_id                    INTEGER PRIMARY KEY AUTOINCREMENT,
    driver_daily_summary_id    INTEGER NOT NULL,
    customer_id                INTEGER NOT NULL,
    payment_type               TEXT NOT NULL DEFAULT 'Cash'
                               CHECK (payment_type IN ('Cash','Debit','Credit')),
    notes                      TEXT,
    total_sale_amount          NUMERIC NOT NULL DEFAULT 0,
    area_manager_logged_by_id  INTEGER,
    sale_timestamp             TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at                 TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (driver_daily_summary_id)   REFERENCES driver_daily_summaries(summary_id) ON DELETE CASCADE,
    FOREIGN KEY (customer_id)               REFERENCES customers(customer_id),
    FOREIGN KEY (area_manager_logged_by_id) REFERENCES users(user_id)
);
CREATE INDEX IF NOT EXISTS idx_driver_sales_summary ON driver_sales(driver_daily_summary_id);

CREATE TABLE IF NOT EXISTS driver_sale_items (
    item_id          INTEGER PRIMARY KEY AUTOINCREMENT,
    driver_sale_id   INTEGER NOT NULL,
    product_id       INTEGER NOT NULL,
    quantity_sold    NUMERIC NOT NULL CHECK (CAST(quantity_sold AS REAL) > 0),
    unit_price       NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(unit_price AS REAL) >= 0),
    transaction_type TEXT NOT NULL DEFAULT 'Sale'
                     CHECK (transaction_type IN ('Sale','Giveaway','Internal Use')),
    line_total       NUMERIC NOT NULL DEFAULT 0,
    FOREIGN KEY (driver_sale_id) REFERENCES driver_sales(sale_id) ON DELETE CASCADE,
    FOREIGN KEY (product_id)     REFERENCES products(product_id)
);
CREATE INDEX IF NOT EXISTS idx_driver_sale_items_sale ON driver_sale_items(driver_sale_id);

CREATE TABLE IF NOT EXISTS product_returns (
    return_id               INTEGER PRIMARY KEY AUTOINCREMENT,
    driver_id               INTEGER NOT NULL,
    return_date             DATE NOT NULL,
    product_id              INTEGER NOT NULL,
    quantity_returned       NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(quantity_returned AS REAL) >= 0),
    loss_reason_id          INTEGER,
    custom_reason_for_loss  TEXT,
    driver_daily_summary_id INTEGER,
    area_manager_id         INTEGER,
    notes                   TEXT,
    created_at              TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (driver_id)               REFERENCES drivers(driver_id),
    FOREIGN KEY (product_id)              REFERENCES products(product_id),
    FOREIGN KEY (loss_reason_id)          REFERENCES loss_reasons(loss_reason_id),
    FOREIGN KEY (driver_daily_summary_id) REFERENCES driver_daily_summaries(summary_id) ON DELETE SET NULL,
    FOREIGN KEY (area_manager_id)         REFERENCES users(user_id)
);
CREATE INDEX IF NOT EXISTS idx_product_returns_driver_date ON product_returns(driver_id, return_date);

CREATE TABLE IF NOT EXISTS packaging_logs (
    log_id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    driver_id               INTEGER NOT NULL,
    log_date                DATE NOT NULL,
    packaging_type_id       INTEGER NOT NULL,
    quantity_out            NUMERIC CHECK (quantity_out IS NULL OR CAST(quantity_out AS REAL) >= 0),
    quantity_returned       NUMERIC CHECK (quantity_returned IS NULL OR CAST(quantity_returned AS REAL) >= 0),
    shrinkage_override      NUMERIC,
    driver_daily_summary_id INTEGER,
    area_manager_id         INTEGER,
    notes                   TEXT,
    created_at              TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (driver_id)               REFERENCES drivers(driver_id),
    FOREIGN KEY (packaging_type_id)       REFERENCES packaging_types(packaging_type_id),
    FOREIGN KEY (driver_daily_summary_id) REFERENCES driver_daily_summaries(summary_id) ON DELETE SET NULL,
    FOREIGN KEY (area_manager_id)         REFERENCES users(user_id)
);
CREATE INDEX IF NOT EXISTS idx_packaging_logs_driver_date ON packaging_logs(driver_id, log_date);

/* keep updated_at honest on direct edits */
DROP TRIGGER IF EXISTS trg_driver_sales_touch;
CREATE TRIGGER trg_driver_sales_touch
AFTER UPDATE OF payment_type, notes, customer_id, total_sale_amount ON driver_sales
FOR EACH ROW
BEGIN
  UPDATE driver_sales SET updated_at = CURRENT_TIMESTAMP WHERE sale_id = NEW.sale_id;
END;
"""


def init_schema(db_path: Path | str) -> None:
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    try:
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.executescript(SQL)
        conn.commit()
    finally:
        conn.close()
    _log.debug("schema applied to %s", db_path)
