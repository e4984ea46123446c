"""
/api/sales-ops: loading logs, daily summaries, driver sales, returns and
the reconciliation view.

Handlers stay thin: parse the request, call one repository method, shape
the JSON. Validation and error mapping live in the repositories and
api/errors.py.
"""
from __future__ import annotations

from dataclasses import asdict

from flask import Blueprint, current_app, jsonify, request

from ..constants import OVERRIDE_ROLES, READ_ROLES, WRITE_ROLES
from ..database.repositories import (
    CustomersRepo,
    DomainError,
    DriverReturnsRepo,
    DriverSalesRepo,
    DriverSummariesRepo,
    LoadingLogsRepo,
    NotFoundError,
    ProductsRepo,
    ReconciliationRepo,
    RoutesRepo,
    group_by_batch,
)
from ..utils.validators import try_parse_int
from .auth import current_role, current_user_id, require_roles
from .db import get_db

sales_ops_bp = Blueprint("sales_ops", __name__, url_prefix="/api/sales-ops")


# ---------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------

def _body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise DomainError("Request body must be a JSON object.")
    return data


def _int_arg(name: str, *, required: bool = False) -> int | None:
    raw = request.args.get(name)
    if raw is None or raw == "":
        if required:
            raise DomainError(f"Query parameter '{name}' is required.")
        return None
    ok, val = try_parse_int(raw)
    if not ok:
        raise DomainError(f"Invalid {name}.")
    return val


def _can_override() -> bool:
    return current_role() in OVERRIDE_ROLES


def _settings():
    return current_app.config["ICE_OPS_SETTINGS"]


# ---------------------------------------------------------------------
# Directories
# ---------------------------------------------------------------------

@sales_ops_bp.get("/products")
@require_roles(READ_ROLES)
def list_products():
    return jsonify([asdict(p) for p in ProductsRepo(get_db()).list_products()])


@sales_ops_bp.get("/customers/<int:customer_id>/prices")
@require_roles(READ_ROLES)
def get_customer_prices(customer_id: int):
    prices = CustomersRepo(get_db()).list_prices(customer_id)
    return jsonify({"customer_id": customer_id, "prices": prices})


@sales_ops_bp.put("/customers/<int:customer_id>/prices/<int:product_id>")
@require_roles(WRITE_ROLES)
def set_customer_price(customer_id: int, product_id: int):
    body = _body()
    row = CustomersRepo(get_db()).set_price(
        customer_id,
        product_id,
        body.get("unit_price"),
        effective_date=body.get("effective_date"),
        reason=body.get("reason"),
        set_by_user_id=current_user_id(),
    )
    return jsonify(row)


@sales_ops_bp.get("/routes/<int:route_id>/customers")
@require_roles(READ_ROLES)
def list_route_customers(route_id: int):
    return jsonify(RoutesRepo(get_db()).list_customers(route_id))


@sales_ops_bp.post("/routes/<int:route_id>/customers")
@require_roles(WRITE_ROLES)
def add_route_customer(route_id: int):
    body = _body()
    ok, customer_id = try_parse_int(body.get("customer_id"))
    if not ok:
        raise DomainError("A valid customer_id is required.")
    seq = body.get("route_sequence")
    if seq is not None:
        ok, seq = try_parse_int(seq)
        if not ok:
            raise DomainError("Invalid route_sequence.")
    row = RoutesRepo(get_db()).add_customer(
        route_id, customer_id, route_sequence=seq, created_by=current_user_id()
    )
    return jsonify(row), 201


@sales_ops_bp.delete("/routes/<int:route_id>/customers/<int:customer_id>")
@require_roles(WRITE_ROLES)
def remove_route_customer(route_id: int, customer_id: int):
    RoutesRepo(get_db()).remove_customer(route_id, customer_id)
    return jsonify({"message": "Customer removed from route."})


@sales_ops_bp.put("/routes/<int:route_id>/customer-order")
@require_roles(WRITE_ROLES)
def reorder_route_customers(route_id: int):
    ids = _body().get("customer_ids")
    if not isinstance(ids, list):
        raise DomainError("customer_ids must be a list.")
    parsed = []
    for raw in ids:
        ok, cid = try_parse_int(raw)
        if not ok:
            raise DomainError("customer_ids must contain customer ids.")
        parsed.append(cid)
    return jsonify(RoutesRepo(get_db()).reorder_customers(route_id, parsed))


# ---------------------------------------------------------------------
# Loading logs
# ---------------------------------------------------------------------

@sales_ops_bp.post("/loading-logs")
@require_roles(WRITE_ROLES)
def create_loading_logs():
    body = _body()
    repo = LoadingLogsRepo(get_db(), tz_name=_settings().timezone)
    batch = repo.record_batch(
        driver_id=body.get("driver_id"),
        items=body.get("items"),
        load_type=body.get("load_type") or "initial",
        load_timestamp=body.get("load_timestamp"),
        route_id=body.get("route_id"),
        notes=body.get("notes"),
        area_manager_id=current_user_id(),
    )
    return jsonify({"success": True, **batch}), 201


@sales_ops_bp.get("/loading-logs")
@require_roles(READ_ROLES)
def get_loading_logs():
    rows = LoadingLogsRepo(get_db(), tz_name=_settings().timezone).list_logs(
        driver_id=_int_arg("driver_id"),
        date=request.args.get("date") or None,
        driver_name=request.args.get("driver_name") or None,
        route_id=_int_arg("route_id"),
        load_type=request.args.get("load_type") or None,
        load_batch_id=request.args.get("batch_id") or None,
    )
    if request.args.get("grouped") in ("1", "true", "yes"):
        return jsonify(group_by_batch(rows))
    return jsonify(rows)


@sales_ops_bp.put("/loading-logs/batch/<batch_id>")
@require_roles(WRITE_ROLES)
def update_loading_log_batch(batch_id: str):
    body = _body()
    kwargs = {}
    if "route_id" in body:
        kwargs["route_id"] = body["route_id"]
    if "notes" in body:
        kwargs["notes"] = body["notes"]
    batch = LoadingLogsRepo(get_db(), tz_name=_settings().timezone).update_batch(
        batch_id,
        items=body.get("items"),
        load_type=body.get("load_type"),
        area_manager_id=current_user_id(),
        **kwargs,
    )
    return jsonify({"success": True, **batch})


# ---------------------------------------------------------------------
# Daily summaries
# ---------------------------------------------------------------------

@sales_ops_bp.post("/driver-daily-summaries")
@require_roles(WRITE_ROLES)
def start_driver_day():
    body = _body()
    summary, created = DriverSummariesRepo(get_db()).start_day(
        driver_id=body.get("driver_id"),
        sale_date=body.get("sale_date"),
        route_id=body.get("route_id"),
        area_manager_id=current_user_id(),
    )
    return jsonify(summary), (201 if created else 200)


@sales_ops_bp.get("/driver-daily-summaries")
@require_roles(READ_ROLES)
def get_driver_summaries():
    summary_id = _int_arg("summary_id")
    driver_id = _int_arg("driver_id")
    sale_date = request.args.get("sale_date") or None
    rows = DriverSummariesRepo(get_db()).list_summaries(
        summary_id=summary_id,
        driver_id=driver_id,
        sale_date=sale_date,
        reconciliation_status=request.args.get("status") or None,
    )
    # A specific lookup that finds nothing is a 404, a filtered listing is not.
    if not rows and (summary_id is not None or (driver_id is not None and sale_date)):
        raise NotFoundError("Driver daily summary not found.")
    return jsonify(rows)


@sales_ops_bp.put("/driver-daily-summaries/<int:summary_id>")
@require_roles(WRITE_ROLES)
def update_driver_summary(summary_id: int):
    body = _body()
    if "route_id" not in body:
        raise DomainError("route_id is required.")
    row = DriverSummariesRepo(get_db()).update_route(
        summary_id, body.get("route_id"), user_id=current_user_id()
    )
    return jsonify(row)


@sales_ops_bp.put("/driver-daily-summaries/<int:summary_id>/reconcile")
@require_roles(WRITE_ROLES)
def reconcile_driver_summary(summary_id: int):
    body = _body()
    row = DriverSummariesRepo(get_db()).reconcile(
        summary_id,
        cash_collected=body.get("total_cash_collected_from_driver"),
        notes=body.get("reconciliation_notes"),
        user_id=current_user_id(),
    )
    return jsonify(row)


# ---------------------------------------------------------------------
# Driver sales
# ---------------------------------------------------------------------

@sales_ops_bp.post("/sales-entry/batch")
@require_roles(WRITE_ROLES)
def batch_sales_entry():
    body = _body()
    if body.get("driver_daily_summary_id") in (None, ""):
        raise DomainError("driver_daily_summary_id and sales_data array are required.")
    result = DriverSalesRepo(get_db()).submit_daily_sales(
        body.get("driver_daily_summary_id"),
        body.get("sales_data"),
        area_manager_id=current_user_id(),
        allow_reconciled=_can_override(),
    )
    payload = result.to_dict()
    payload["success"] = True
    payload["message"] = f"Saved {result.processed_sales} sales."
    return jsonify(payload)


@sales_ops_bp.get("/driver-sales")
@require_roles(READ_ROLES)
def list_driver_sales():
    summary_id = _int_arg("driver_daily_summary_id", required=True)
    return jsonify(DriverSalesRepo(get_db()).list_sales(summary_id))


@sales_ops_bp.get("/driver-sales/edit/<int:summary_id>")
@require_roles(READ_ROLES)
def driver_sales_for_edit(summary_id: int):
    return jsonify(DriverSalesRepo(get_db()).list_sales_for_edit(summary_id))


@sales_ops_bp.post("/driver-sales")
@require_roles(WRITE_ROLES)
def create_driver_sale():
    body = _body()
    sale = DriverSalesRepo(get_db()).create_sale(
        summary_id=body.get("driver_daily_summary_id"),
        customer_id=body.get("customer_id"),
        items=body.get("sale_items", body.get("items")),
        payment_type=body.get("payment_type") or "Cash",
        notes=body.get("notes"),
        area_manager_id=current_user_id(),
        allow_reconciled=_can_override(),
    )
    return jsonify(sale), 201


@sales_ops_bp.put("/driver-sales/<int:sale_id>")
@require_roles(WRITE_ROLES)
def update_driver_sale(sale_id: int):
    body = _body()
    kwargs = {}
    if "notes" in body:
        kwargs["notes"] = body["notes"]
    sale = DriverSalesRepo(get_db()).update_sale(
        sale_id,
        payment_type=body.get("payment_type"),
        items=body.get("sale_items", body.get("items")),
        customer_id=body.get("customer_id"),
        area_manager_id=current_user_id(),
        allow_reconciled=_can_override(),
        **kwargs,
    )
    return jsonify(sale)


@sales_ops_bp.delete("/driver-sales/<int:sale_id>")
@require_roles(OVERRIDE_ROLES)
def delete_driver_sale(sale_id: int):
    DriverSalesRepo(get_db()).delete_sale(sale_id, allow_reconciled=_can_override())
    return jsonify({"message": "Driver sale deleted."})


# ---------------------------------------------------------------------
# Returns & packaging
# ---------------------------------------------------------------------

@sales_ops_bp.post("/batch-returns")
@require_roles(WRITE_ROLES)
def batch_returns():
    body = _body()
    if not body.get("driver_id") or not body.get("return_date") or not body.get("driver_daily_summary_id"):
        raise DomainError("Driver ID, Return Date, and Summary ID are required.")
    saved = DriverReturnsRepo(get_db()).submit_daily_returns(
        driver_id=body.get("driver_id"),
        return_date=body.get("return_date"),
        summary_id=body.get("driver_daily_summary_id"),
        product_items=body.get("product_items"),
        packaging_items=body.get("packaging_items"),
        area_manager_id=current_user_id(),
    )
    return jsonify({"message": "All returns and packaging logs saved successfully.", **saved}), 201


@sales_ops_bp.post("/product-returns")
@require_roles(WRITE_ROLES)
def create_product_returns():
    body = _body()
    n = DriverReturnsRepo(get_db()).record_product_returns(
        driver_id=body.get("driver_id"),
        return_date=body.get("return_date"),
        items=body.get("items"),
        summary_id=body.get("driver_daily_summary_id"),
        area_manager_id=current_user_id(),
    )
    return jsonify({"message": f"Successfully saved {n} return entries.", "saved": n}), 201


@sales_ops_bp.get("/product-returns")
@require_roles(READ_ROLES)
def get_product_returns():
    rows = DriverReturnsRepo(get_db()).list_product_returns(
        driver_id=_int_arg("driver_id"),
        date=request.args.get("date") or None,
        product_id=_int_arg("product_id"),
    )
    return jsonify(rows)


@sales_ops_bp.get("/loss-reasons")
@require_roles(READ_ROLES)
def get_loss_reasons():
    return jsonify(DriverReturnsRepo(get_db()).list_loss_reasons())


@sales_ops_bp.get("/packaging-types")
@require_roles(READ_ROLES)
def get_packaging_types():
    return jsonify(DriverReturnsRepo(get_db()).list_packaging_types())


@sales_ops_bp.post("/packaging-logs")
@require_roles(WRITE_ROLES)
def create_packaging_log():
    body = _body()
    row = DriverReturnsRepo(get_db()).record_packaging_log(
        driver_id=body.get("driver_id"),
        log_date=body.get("log_date"),
        packaging_type_id=body.get("packaging_type_id"),
        quantity_out=body.get("quantity_out"),
        quantity_returned=body.get("quantity_returned"),
        shrinkage_override=body.get("shrinkage_override"),
        summary_id=body.get("driver_daily_summary_id"),
        notes=body.get("notes"),
        area_manager_id=current_user_id(),
    )
    return jsonify(row), 201


@sales_ops_bp.get("/packaging-logs")
@require_roles(READ_ROLES)
def get_packaging_logs():
    rows = DriverReturnsRepo(get_db()).list_packaging_logs(
        driver_id=_int_arg("driver_id"),
        date=request.args.get("date") or None,
        packaging_type_id=_int_arg("packaging_type_id"),
    )
    return jsonify(rows)


# ---------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------

@sales_ops_bp.get("/reconciliation-summary")
@require_roles(READ_ROLES)
def get_reconciliation_summary():
    driver_id = _int_arg("driver_id", required=True)
    day = request.args.get("date")
    if not day:
        raise DomainError("Driver ID and Date are required.")
    return jsonify(ReconciliationRepo(get_db()).get_summary(driver_id, day))
