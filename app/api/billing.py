"""
Billing routes.

/all, /range, /method and /summary/... are registered before /{bill_id}.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from app.core.config import get_settings
from app.domain import CartEntry
from app.schemas import (
    ApiResponse,
    BillCreate,
    BillOut,
    BillUpdate,
    DailySummaryOut,
    ErrorResponse,
    MessageResponse,
    SalesSummaryOut,
    TopItemOut,
)
from app.services import ServiceContainer

logger = logging.getLogger(__name__)


def queue_ledger_export(bill: BillOut) -> None:
    """
    Hand the bill to the Celery ledger export.

    The bill is already stored, so a broker failure is logged and the
    checkout still succeeds.
    """
    if not get_settings().ledger_export_enabled:
        return

    from app.tasks import export_bill_to_excel

    try:
        export_bill_to_excel.delay(bill.model_dump(mode="json", by_alias=True))
    except Exception as e:
        logger.error(f"Could not queue ledger export for bill {bill.id}: {e}")


def build_billing_router(services: ServiceContainer) -> APIRouter:
    """Billing routes bound to one service container."""
    router = APIRouter(prefix="/billing")
    billing = services.billing
    sales = services.sales
    label = services.policy.name

    def bills_out(bills) -> list[BillOut]:
        return [BillOut.model_validate(b) for b in bills]

    @router.post(
        "/create",
        status_code=201,
        response_model=ApiResponse[BillOut],
        responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
        summary="Create a bill from a cart",
    )
    async def create_bill(body: BillCreate):
        logger.info(f"🧾 Billing[{label}]: Creating bill with {len(body.cart_items)} cart item(s)")
        cart = [
            CartEntry(menu_item_id=c.menu_item_id, quantity_in_grams=c.quantity_in_grams)
            for c in body.cart_items
        ]
        bill = await billing.create_bill(
            cart,
            discount=body.discount,
            payment_method=body.payment_method,
            notes=body.notes,
        )
        out = BillOut.model_validate(bill)
        queue_ledger_export(out)
        return {"success": True, "data": out}

    @router.get("/all", response_model=ApiResponse[list[BillOut]], summary="List all bills")
    async def list_bills():
        return {"success": True, "data": bills_out(await billing.list_bills())}

    @router.get(
        "/range/{start}/{end}",
        response_model=ApiResponse[list[BillOut]],
        summary="Bills between two dates (inclusive)",
    )
    async def bills_in_range(start: str, end: str):
        return {"success": True, "data": bills_out(await sales.bills_in_range(start, end))}

    @router.get(
        "/method/{method}",
        response_model=ApiResponse[list[BillOut]],
        summary="Bills paid with one method",
    )
    async def bills_by_method(method: str):
        return {"success": True, "data": bills_out(await sales.bills_by_method(method))}

    @router.get("/summary/sales", response_model=ApiResponse[SalesSummaryOut], summary="Sales summary")
    async def sales_summary():
        summary = await sales.sales_summary()
        return {"success": True, "data": SalesSummaryOut.model_validate(summary)}

    @router.get(
        "/summary/top-items",
        response_model=ApiResponse[list[TopItemOut]],
        summary="Most sold items by grams",
    )
    async def top_items(limit: Optional[int] = Query(None, ge=1, le=1000)):
        items = await sales.top_items(limit)
        return {"success": True, "data": [TopItemOut.model_validate(i) for i in items]}

    @router.get(
        "/summary/daily/{day}",
        response_model=ApiResponse[DailySummaryOut],
        summary="Sales summary for one calendar day",
    )
    async def daily_summary(day: str):
        summary = await sales.daily_summary(day)
        return {"success": True, "data": DailySummaryOut.model_validate(summary)}

    @router.get(
        "/{bill_id}",
        response_model=ApiResponse[BillOut],
        responses={404: {"model": ErrorResponse}},
        summary="Get a bill",
    )
    async def get_bill(bill_id: str):
        bill = await billing.get_bill(bill_id)
        if bill is None:
            raise HTTPException(status_code=404, detail="Bill not found")
        return {"success": True, "data": BillOut.model_validate(bill)}

    @router.put("/{bill_id}", response_model=ApiResponse[BillOut], summary="Update a bill")
    async def update_bill(bill_id: str, body: BillUpdate):
        changes = body.model_dump(exclude_unset=True, exclude_none=True)
        bill = await billing.update_bill(bill_id, changes)
        if bill is None:
            raise HTTPException(status_code=404, detail="Bill not found")
        return {"success": True, "data": BillOut.model_validate(bill)}

    @router.delete("/{bill_id}", response_model=MessageResponse, summary="Delete a bill")
    async def delete_bill(bill_id: str):
        if not await billing.delete_bill(bill_id):
            raise HTTPException(status_code=404, detail="Bill not found")
        return {"success": True, "message": "Bill deleted successfully"}

    return router
