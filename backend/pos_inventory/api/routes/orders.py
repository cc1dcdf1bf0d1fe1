"""Order routes - the boundary where recipe usage deduction is triggered.

Placing an order commits the order and its usage outbox row together; the
deduction itself runs afterwards as a background task and is retried by the
scheduler, so it never changes the response.
"""

import asyncio
import logging

from fastapi import APIRouter, BackgroundTasks, Query, Request

from pos_inventory.core.rate_limit import limiter
from pos_inventory.core.rbac import CurrentUser, RequireManager
from pos_inventory.core.responses import list_response
from pos_inventory.core.validators import PositiveIntId
from pos_inventory.db.session import DbSession
from pos_inventory.models.operations import UsageTaskStatus
from pos_inventory.schemas.order import OrderCreate, OrderResponse, UsageTaskResponse
from pos_inventory.services.order_service import OrderService
from pos_inventory.services.order_usage_service import OrderUsageService, process_usage_task
from pos_inventory.services.websocket_service import emit_usage_recorded

logger = logging.getLogger(__name__)

router = APIRouter()


async def deduct_order_usage(task_id: int, venue_id: int) -> None:
    """Run one outbox row off the event loop, then push the outcome."""
    outcome = await asyncio.to_thread(process_usage_task, task_id)
    if outcome and outcome["status"] == UsageTaskStatus.DONE:
        await emit_usage_recorded(outcome["order_id"], outcome["result"] or {}, venue_id)
    elif outcome:
        logger.warning(f"Usage task {task_id} left {outcome['status']}, the scheduler will retry")


@router.get("/")
@limiter.limit("60/minute")
def list_orders(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    limit: int = Query(50, ge=1, le=200),
):
    orders = OrderService(db).list_orders(limit)
    return list_response([OrderResponse.model_validate(o) for o in orders])


@router.post("/", response_model=OrderResponse, status_code=201)
@limiter.limit("60/minute")
def create_order(
    request: Request,
    payload: OrderCreate,
    background_tasks: BackgroundTasks,
    db: DbSession,
    current_user: CurrentUser,
):
    """Place an order; ingredients are deducted in the background."""
    order = OrderService(db).create_order(payload.model_dump(), current_user.user_id)
    background_tasks.add_task(deduct_order_usage, order.usage_task.id, current_user.venue_id)
    return order


@router.get("/{order_id}", response_model=OrderResponse)
@limiter.limit("60/minute")
def get_order(request: Request, order_id: PositiveIntId, db: DbSession, current_user: CurrentUser):
    return OrderService(db).get_order(order_id)


@router.post("/{order_id}/usage/retry", response_model=UsageTaskResponse)
@limiter.limit("10/minute")
def retry_order_usage(
    request: Request,
    order_id: PositiveIntId,
    background_tasks: BackgroundTasks,
    db: DbSession,
    current_user: RequireManager,
):
    """Run a pending or failed usage deduction now."""
    task = OrderUsageService(db).run_usage_for_order(order_id)
    if task.status == UsageTaskStatus.DONE and task.result:
        background_tasks.add_task(emit_usage_recorded, task.order_id, task.result, current_user.venue_id)
    return task
