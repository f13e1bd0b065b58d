"""
Internal routes: the external scheduler trigger, status report, maintenance
"""

import hmac

from flask import Blueprint, current_app, request
from flask_login import current_user

from rlv_store import csrf, limiter
from rlv_store.buisness.core.errors import PermissionDenied
from rlv_store.data.core.user_info.user import User
from rlv_store.logger import get_logger
from rlv_store.presentation.routes.helpers import get_lifecycle, ok, role_required
from rlv_store.services.dispatching.dispatch_service import DispatchService
from rlv_store.utils.logging_sanitizer import sanitize_headers

logger = get_logger("rlv_store.routes.internal")
bp = Blueprint('internal', __name__)

TOKEN_HEADER = 'X-Scheduler-Token'


def _require_scheduler_token():
    expected = current_app.config.get('SCHEDULER_TOKEN')
    supplied = request.headers.get(TOKEN_HEADER, '')
    if not expected:
        logger.warning("Scheduler trigger called but SCHEDULER_TOKEN is not configured")
        raise PermissionDenied("Scheduler trigger is disabled")
    if not hmac.compare_digest(supplied.encode(), expected.encode()):
        logger.warning(f"Scheduler trigger with invalid token: {sanitize_headers(request.headers)}")
        raise PermissionDenied("Invalid scheduler token")


@bp.post('/scheduler/tick')
@csrf.exempt
@limiter.exempt
def scheduler_tick():
    _require_scheduler_token()
    result = get_lifecycle().run_scheduler_tick()
    return ok({'result': result.to_dict()})


@bp.get('/status')
@limiter.exempt
def status():
    _require_scheduler_token()
    report = DispatchService.status_report(
        auto_approve_seconds=current_app.config.get('ORDER_AUTO_APPROVE_SECONDS', 60)
    )
    return ok({'report': report})


@bp.post('/dispatches/clear')
@role_required(User.ROLE_ADMIN)
def clear_dispatches():
    cleared = get_lifecycle().clear_dispatch_records(current_user.id)
    return ok({'cleared': cleared})
