"""
Tests for the per-user, per-store cart
"""
import pytest

from rlv_store.buisness.cart.cart_aggregator import CartAggregator, CartLine
from rlv_store.buisness.core.errors import ItemNotInCart, ValidationError


def line(item_id='dipirona', price=10.0, quantity=1):
    return CartLine(item_id, item_id.title(), price, quantity)


def test_add_merges_and_clamps_to_max_per_item():
    """Adding 2 then 2 of the same item leaves one line clamped to 3"""
    cart = CartAggregator()
    first = cart.add('farmacia', line(quantity=2))
    assert not first.adjusted, "2 is within the cap"

    second = cart.add('farmacia', line(quantity=2))
    assert second.adjusted, "4 exceeds the cap and must be reported as adjusted"
    assert second.requested == 4
    assert cart.quantity_of('farmacia', 'dipirona') == 3, "Quantity should be clamped to 3"
    assert len(cart.lines('farmacia')) == 1, "Same item must merge into one line"


def test_add_rejects_invalid_lines():
    cart = CartAggregator()
    with pytest.raises(ValidationError):
        cart.add('farmacia', line(quantity=0))
    with pytest.raises(ValidationError):
        cart.add('farmacia', line(price=-1.0))
    assert cart.is_empty('farmacia'), "Rejected lines must not be stored"


def test_increase_is_clamped_and_decrease_floors_at_one():
    cart = CartAggregator()
    cart.add('farmacia', line(quantity=3))
    cart.increase('farmacia', 'dipirona')
    assert cart.quantity_of('farmacia', 'dipirona') == 3, "Increase above the cap is a no-op"

    for _ in range(5):
        cart.decrease('farmacia', 'dipirona')
    assert cart.quantity_of('farmacia', 'dipirona') == 1, "Decrease never drops below 1"


def test_unknown_item_raises():
    cart = CartAggregator()
    with pytest.raises(ItemNotInCart):
        cart.increase('farmacia', 'nope')
    with pytest.raises(ItemNotInCart):
        cart.remove('farmacia', 'nope')


def test_remove_and_clear_are_per_store():
    cart = CartAggregator()
    cart.add('farmacia', line('dipirona'))
    cart.add('farmacia', line('curativo', price=2.5))
    cart.add('bar', line('cerveja', price=8.0))

    removed = cart.remove('farmacia', 'dipirona')
    assert removed.item_id == 'dipirona'
    assert [entry.item_id for entry in cart.lines('farmacia')] == ['curativo']

    cart.clear('farmacia')
    assert cart.is_empty('farmacia')
    assert not cart.is_empty('bar'), "Clearing one store must not touch another"


def test_total_rounds_to_cents():
    cart = CartAggregator()
    cart.add('farmacia', line('dipirona', price=10.1, quantity=3))
    cart.add('farmacia', line('curativo', price=2.55, quantity=2))
    assert cart.total('farmacia') == 35.4
    assert cart.total('bar') == 0


def test_lines_are_copies():
    cart = CartAggregator()
    cart.add('farmacia', line(quantity=1))
    cart.lines('farmacia')[0].quantity = 99
    assert cart.quantity_of('farmacia', 'dipirona') == 1, "Callers must not mutate the cart through lines()"


def test_session_form_preserves_order_and_reclamps():
    cart = CartAggregator()
    cart.add('farmacia', line('dipirona'))
    cart.add('farmacia', line('curativo', price=2.5, quantity=2))

    data = cart.to_dict()
    data['farmacia'][0]['quantity'] = 7

    restored = CartAggregator.from_dict(data)
    assert [entry.item_id for entry in restored.lines('farmacia')] == ['dipirona', 'curativo']
    assert restored.quantity_of('farmacia', 'dipirona') == 3, "Out-of-range session data is clamped on load"
    assert CartAggregator.from_dict(None).is_empty('farmacia')
