"""
Tests for the JSON API: storefront, manager, courier and internal routes
"""
from rlv_store.data.core.user_info.user import User
from rlv_store.test.factories import SCHEDULER_TOKEN, give_inventory, login, make_user


def client_for(app, username):
    client = app.test_client()
    response = login(client, username)
    assert response.status_code == 200, f"Login failed for {username}: {response.get_json()}"
    return client


def place_order(app, delivery_type='delivery'):
    buyer = client_for(app, 'ana')
    buyer.post('/store/farmacia/cart/items', json={'item_id': 'dipirona', 'quantity': 2})
    response = buyer.post('/store/farmacia/orders', json={'delivery_type': delivery_type})
    assert response.status_code == 201, response.get_json()
    return buyer, response.get_json()['order']


def tick(client):
    return client.post('/internal/scheduler/tick', headers={'X-Scheduler-Token': SCHEDULER_TOKEN})


def test_catalog_is_public(client, world):
    stores = client.get('/stores').get_json()['stores']
    assert {s['id'] for s in stores} == {'farmacia', 'bar'}

    items = client.get('/store/farmacia/items').get_json()
    assert set(items['categories']) == {'Remedios', 'Primeiros socorros'}

    assert client.get('/store/nowhere/items').status_code == 404


def test_login_failures(client, world):
    assert login(client, 'ana', 'wrong').status_code == 401
    assert client.post('/auth/login', json={'username': 'ana'}).status_code == 400
    assert client.get('/store/farmacia/cart').status_code == 401, "Cart needs a login"


def test_cart_add_is_clamped(app, world):
    buyer = client_for(app, 'ana')

    body = buyer.post('/store/farmacia/cart/items', json={'item_id': 'dipirona', 'quantity': 5}).get_json()
    assert body['adjusted'] is True
    assert body['line']['quantity'] == 3
    assert 'message' in body

    body = buyer.post('/store/farmacia/cart/items/dipirona/decrease').get_json()
    assert body['line']['quantity'] == 2

    cart = buyer.get('/store/farmacia/cart').get_json()['cart']
    assert cart['total'] == 20.0

    assert buyer.delete('/store/farmacia/cart/items/dipirona').status_code == 200
    assert buyer.get('/store/farmacia/cart').get_json()['cart']['lines'] == []


def test_cart_is_not_inherited_by_the_next_login(app, world):
    make_user('bruno', User.ROLE_BUYER, wallet_balance=100.0)
    browser = client_for(app, 'ana')
    browser.post('/store/farmacia/cart/items', json={'item_id': 'dipirona', 'quantity': 2})
    assert len(browser.get('/store/farmacia/cart').get_json()['cart']['lines']) == 1

    assert browser.post('/auth/logout').status_code == 200
    assert login(browser, 'bruno').status_code == 200

    assert browser.get('/store/farmacia/cart').get_json()['cart']['lines'] == []
    response = browser.post('/store/farmacia/orders', json={'delivery_type': 'pickup'})
    assert response.get_json()['error'] == 'empty_cart'


def test_cart_refuses_items_beyond_inventory_cap(app, world):
    give_inventory(world['buyer'].id, 'dipirona', 10)
    buyer = client_for(app, 'ana')

    response = buyer.post('/store/farmacia/cart/items', json={'item_id': 'dipirona', 'quantity': 1})
    assert response.status_code == 400
    assert response.get_json()['error'] == 'inventory_limit_reached'


def test_submit_empty_cart(app, world):
    buyer = client_for(app, 'ana')
    response = buyer.post('/store/farmacia/orders', json={'delivery_type': 'pickup'})
    assert response.status_code == 400
    assert response.get_json()['error'] == 'empty_cart'


def test_order_flow_over_http(app, world):
    buyer, order = place_order(app)
    assert order['status'] == 'pending'
    assert order['total_amount'] == 20.0
    assert buyer.get('/store/farmacia/cart').get_json()['cart']['lines'] == [], "Cart cleared after submit"

    manager = client_for(app, 'Farmacia1212')
    pending = manager.get('/manager/orders').get_json()['orders']
    assert [o['id'] for o in pending] == [order['id']]

    response = manager.post(f"/manager/orders/{order['id']}/decision", json={'decision': 'approve'})
    assert response.status_code == 200
    assert response.get_json()['order']['status'] == 'approved'

    response = manager.post(f"/manager/orders/{order['id']}/decision", json={'decision': 'reject'})
    assert response.status_code == 409
    assert response.get_json()['error'] == 'already_resolved'
    assert response.get_json()['current_status'] == 'approved'

    courier = client_for(app, 'motoboy')
    queue = courier.get('/courier/dispatches').get_json()['dispatches']
    assert len(queue) == 1
    dispatch_id = queue[0]['id']

    assert courier.post(f'/courier/dispatches/{dispatch_id}/accept').status_code == 200
    other = client_for(app, 'motoboy2')
    assert other.get('/courier/dispatches').get_json()['dispatches'] == [], "Accepted records are private"
    assert other.post(f'/courier/dispatches/{dispatch_id}/deliver').status_code == 409

    response = courier.post(f'/courier/dispatches/{dispatch_id}/deliver')
    assert response.get_json()['dispatch']['motoboy_status'] == 'delivered'

    result = tick(app.test_client()).get_json()['result']
    assert result['credited'] == 1

    inventory = buyer.get('/inventory/mine').get_json()['items']
    assert inventory == [{'item_id': 'dipirona', 'item_name': 'Dipirona', 'quantity': 2}]

    mine = buyer.get('/orders/mine').get_json()['orders']
    assert mine[0]['events'][-1]['event_type'] == 'InventoryCredited'

    sales = manager.get('/manager/sales').get_json()
    assert sales['total_amount'] == 20.0
    assert sales['store_balance'] == 20.0, "The approved total was credited to the store"


def test_manager_cancels_waiting_dispatch(app, world):
    place_order(app)
    manager = client_for(app, 'Farmacia1212')
    order_id = manager.get('/manager/orders').get_json()['orders'][0]['id']
    manager.post(f'/manager/orders/{order_id}/decision', json={'decision': 'approve'})

    dispatch_id = manager.get('/manager/dispatches').get_json()['dispatches'][0]['id']
    response = manager.post(f'/manager/dispatches/{dispatch_id}/cancel', json={'notes': 'retirar na loja'})
    assert response.status_code == 200
    assert response.get_json()['dispatch']['manager_status'] == 'rejected'


def test_role_checks(app, world):
    buyer = client_for(app, 'ana')
    assert buyer.get('/manager/orders').status_code == 403
    assert buyer.get('/courier/dispatches').status_code == 403
    assert buyer.post('/internal/dispatches/clear').status_code == 403

    admin = client_for(app, 'admin')
    response = admin.post('/internal/dispatches/clear')
    assert response.status_code == 200
    assert response.get_json()['cleared'] == 0


def test_scheduler_trigger_requires_token(client, world):
    assert client.post('/internal/scheduler/tick').status_code == 403
    assert client.post('/internal/scheduler/tick', headers={'X-Scheduler-Token': 'nope'}).status_code == 403

    response = tick(client)
    assert response.status_code == 200
    assert response.get_json()['result'] == {'approved': 0, 'expired': 0, 'credited': 0, 'errors': []}

    status = client.get('/internal/status', headers={'X-Scheduler-Token': SCHEDULER_TOKEN})
    assert status.status_code == 200
    assert status.get_json()['report']['overdue_pending_orders'] == []


def test_unknown_order_decision(app, world):
    manager = client_for(app, 'Farmacia1212')
    assert manager.post('/manager/orders/999/decision', json={'decision': 'approve'}).status_code == 404
    assert manager.post('/manager/orders/999/decision', json={'decision': 'maybe'}).status_code == 400
