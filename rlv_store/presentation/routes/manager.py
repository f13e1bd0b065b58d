"""
Store manager routes: order decisions, dispatch list and cancellation, sales
"""

from flask import Blueprint
from flask_login import current_user

from rlv_store.data.core.user_info.user import User
from rlv_store.presentation.routes.helpers import (
    get_lifecycle,
    json_body,
    managed_store_id,
    ok,
    parse_decision,
    role_required,
)
from rlv_store.services.dispatching.dispatch_service import DispatchService
from rlv_store.services.ordering.order_service import OrderService

bp = Blueprint('manager', __name__)


@bp.get('/orders')
@role_required(User.ROLE_MANAGER)
def pending_orders():
    store_id = managed_store_id()
    return ok({'store_id': store_id, 'orders': OrderService.pending_for_store(store_id)})


@bp.post('/orders/<int:order_id>/decision')
@role_required(User.ROLE_MANAGER)
def decide_order(order_id):
    data = json_body()
    decision = parse_decision(data.get('decision'), {'approve', 'reject'})
    order = get_lifecycle().manager_decide(order_id, current_user.id, decision, notes=data.get('notes'))
    return ok({'order': OrderService.serialize(order, include_events=True)})


@bp.get('/dispatches')
@role_required(User.ROLE_MANAGER)
def store_dispatches():
    store_id = managed_store_id()
    return ok({'store_id': store_id, 'dispatches': DispatchService.for_store(store_id)})


@bp.post('/dispatches/<int:dispatch_id>/cancel')
@role_required(User.ROLE_MANAGER)
def cancel_dispatch(dispatch_id):
    data = json_body()
    record = get_lifecycle().manager_cancel_dispatch(dispatch_id, current_user.id, notes=data.get('notes'))
    return ok({'dispatch': DispatchService.serialize(record)})


@bp.get('/sales')
@role_required(User.ROLE_MANAGER)
def store_sales():
    store_id = managed_store_id()
    return ok({'store_id': store_id, **OrderService.recent_sales(store_id)})
