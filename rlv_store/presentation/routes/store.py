"""
Storefront routes: catalog, cart, order submission, buyer views
"""

from flask import Blueprint, current_app
from flask_login import current_user, login_required

from rlv_store.buisness.cart.cart_aggregator import CartLine
from rlv_store.buisness.core.errors import InventoryLimitReached, ValidationError
from rlv_store.buisness.inventory.credit_processor import INVENTORY_ITEM_CAP
from rlv_store.logger import get_logger
from rlv_store.presentation.routes.helpers import get_lifecycle, json_body, ok
from rlv_store.services.cart.cart_session import CartSession
from rlv_store.services.inventory.inventory_service import InventoryService
from rlv_store.services.ordering.order_service import OrderService
from rlv_store.services.store.catalog_service import CatalogService
from rlv_store.utils.logging_sanitizer import sanitize_dict

logger = get_logger("rlv_store.routes.store")
bp = Blueprint('store', __name__)


@bp.get('/stores')
def list_stores():
    return ok({'stores': CatalogService.list_stores()})


@bp.get('/store/<store_id>/items')
def list_items(store_id):
    return ok(CatalogService.list_items(store_id))


@bp.get('/store/<store_id>/cart')
@login_required
def view_cart(store_id):
    cart = CartSession.load()
    return ok({'cart': CartSession.serialize(cart, store_id)})


@bp.post('/store/<store_id>/cart/items')
@login_required
def add_to_cart(store_id):
    data = json_body()
    logger.debug(f"Add to cart {store_id} by {current_user.username}: {sanitize_dict(data)}")

    item_id = data.get('item_id')
    if not item_id:
        raise ValidationError("item_id is required")
    try:
        quantity = int(data.get('quantity', 1))
    except (TypeError, ValueError):
        raise ValidationError("quantity must be an integer") from None

    item = CatalogService.get_item(store_id, item_id)
    cart = CartSession.load()

    cap = current_app.config.get('INVENTORY_ITEM_CAP', INVENTORY_ITEM_CAP)
    held = InventoryService.held_quantity(current_user.id, item.id) + cart.quantity_of(store_id, item.id)
    if held >= cap:
        raise InventoryLimitReached(item.id, held, cap)

    result = cart.add(store_id, CartLine(item.id, item.name, item.price, quantity))
    CartSession.save(cart)

    payload = {
        'line': result.line.to_dict(),
        'requested': result.requested,
        'adjusted': result.adjusted,
        'cart': CartSession.serialize(cart, store_id),
    }
    if result.adjusted:
        payload['message'] = f"Quantity limited to {cart.max_per_item} per item"
    return ok(payload)


@bp.post('/store/<store_id>/cart/items/<item_id>/<action>')
@login_required
def change_quantity(store_id, item_id, action):
    cart = CartSession.load()
    if action == 'increase':
        line = cart.increase(store_id, item_id)
    elif action == 'decrease':
        line = cart.decrease(store_id, item_id)
    else:
        raise ValidationError("Action must be 'increase' or 'decrease'")
    CartSession.save(cart)
    return ok({'line': line.to_dict(), 'cart': CartSession.serialize(cart, store_id)})


@bp.delete('/store/<store_id>/cart/items/<item_id>')
@login_required
def remove_from_cart(store_id, item_id):
    cart = CartSession.load()
    cart.remove(store_id, item_id)
    CartSession.save(cart)
    return ok({'cart': CartSession.serialize(cart, store_id)})


@bp.delete('/store/<store_id>/cart')
@login_required
def clear_cart(store_id):
    cart = CartSession.load()
    cart.clear(store_id)
    CartSession.save(cart)
    return ok({'cart': CartSession.serialize(cart, store_id)})


@bp.post('/store/<store_id>/orders')
@login_required
def submit_order(store_id):
    data = json_body()
    delivery_type = data.get('delivery_type', 'pickup')

    cart = CartSession.load()
    order = get_lifecycle().submit_order(cart, store_id, current_user.id, delivery_type)
    CartSession.save(cart)

    logger.info(f"Order {order.id} submitted via API by {current_user.username}")
    return ok({'order': OrderService.serialize(order)}, status=201)


@bp.get('/orders/mine')
@login_required
def my_orders():
    return ok({'orders': OrderService.for_buyer(current_user.id)})


@bp.get('/inventory/mine')
@login_required
def my_inventory():
    return ok({'items': InventoryService.summary_for_user(current_user.id)})
