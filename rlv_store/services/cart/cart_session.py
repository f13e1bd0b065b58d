"""
Cart Session
Keeps each user's CartAggregator in the signed Flask session cookie, under
that user's id, so a second login in the same browser starts with its own
carts.
"""

from flask import current_app, session
from flask_login import current_user

from rlv_store.buisness.cart.cart_aggregator import CartAggregator, MAX_PER_ITEM

SESSION_KEY = 'carts'


class CartSession:

    @staticmethod
    def load() -> CartAggregator:
        max_per_item = current_app.config.get('CART_MAX_PER_ITEM', MAX_PER_ITEM)
        carts = session.get(SESSION_KEY) or {}
        return CartAggregator.from_dict(carts.get(CartSession._owner()), max_per_item=max_per_item)

    @staticmethod
    def save(cart: CartAggregator) -> None:
        carts = dict(session.get(SESSION_KEY) or {})
        carts[CartSession._owner()] = cart.to_dict()
        session[SESSION_KEY] = carts
        session.modified = True

    @staticmethod
    def discard() -> None:
        """Drop the current user's carts, e.g. on logout."""
        carts = dict(session.get(SESSION_KEY) or {})
        if carts.pop(CartSession._owner(), None) is not None:
            session[SESSION_KEY] = carts
            session.modified = True

    @staticmethod
    def serialize(cart: CartAggregator, store_id: str) -> dict:
        return {
            'store_id': store_id,
            'lines': [line.to_dict() for line in cart.lines(store_id)],
            'total': cart.total(store_id),
            'max_per_item': cart.max_per_item,
        }

    @staticmethod
    def _owner() -> str:
        # JSON session keys are strings
        return str(current_user.get_id())
