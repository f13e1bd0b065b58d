"""
Courier (motoboy) routes
"""

from flask import Blueprint
from flask_login import current_user

from rlv_store.buisness.dispatching.state_machine import CourierStateMachine
from rlv_store.data.core.user_info.user import User
from rlv_store.presentation.routes.helpers import get_lifecycle, ok, parse_decision, role_required
from rlv_store.services.dispatching.dispatch_service import DispatchService

bp = Blueprint('courier', __name__)


@bp.get('/dispatches')
@role_required(User.ROLE_COURIER)
def queue():
    courier_id = None if current_user.is_admin else current_user.id
    return ok({'dispatches': DispatchService.courier_queue(courier_id)})


@bp.post('/dispatches/<int:dispatch_id>/<decision>')
@role_required(User.ROLE_COURIER)
def decide(dispatch_id, decision):
    decision = parse_decision(decision, set(CourierStateMachine.DECISIONS))
    record = get_lifecycle().courier_decide(dispatch_id, current_user.id, decision)
    return ok({'dispatch': DispatchService.serialize(record)})
