from datetime import date, timedelta

from conftest import upload

from orderflow.platform import PlatformError
from orderflow.models import order_total, status_label, status_tone
from orderflow.services.audit_service import describe_changes
from orderflow.services.order_service import (
    decorate_order,
    eta_counter_text,
    is_eta_overdue,
    is_eta_soon,
    parse_date,
)


TODAY = date(2024, 5, 10)


def test_eta_helpers():
    assert parse_date('2024-05-01') == date(2024, 5, 1)
    assert parse_date('2024-05-01T10:00:00+00:00') == date(2024, 5, 1)
    assert parse_date('01.05.2024') is None
    assert parse_date(None) is None

    assert is_eta_overdue('2024-05-09', TODAY)
    assert not is_eta_overdue('2024-05-10', TODAY)
    assert not is_eta_overdue(None, TODAY)

    assert is_eta_soon('2024-05-10', today=TODAY)
    assert is_eta_soon('2024-05-17', today=TODAY)
    assert not is_eta_soon('2024-05-18', today=TODAY)
    assert not is_eta_soon('2024-05-09', today=TODAY)

    assert eta_counter_text('2024-05-13', TODAY) == '3 dager igjen'
    assert eta_counter_text('2024-05-10', TODAY) == 'i dag'
    assert eta_counter_text('2024-05-08', TODAY) == '2 dager over'
    assert eta_counter_text('', TODAY) is None


def test_status_labels_and_tones():
    assert status_label('IN_REVIEW') == 'In review'
    assert status_label('whatever') == 'Submitted'
    assert status_tone('delivered') == 'green'
    assert status_tone('CANCELLED') == 'red'
    assert status_tone('SHIPPING') == 'yellow'
    assert status_tone(None) == 'neutral'


def test_decorate_order_and_totals():
    items = [{'qty': 2, 'unit_price': 10.5}, {'qty': 1, 'unit_price': None}, {'qty': '3', 'unit_price': '1'}]
    assert order_total(items) == 24.0

    view = decorate_order({'status': 'ORDERED', 'expected_delivery_date': '2024-05-01'}, 24.0, TODAY)
    assert view['total'] == 24.0
    assert view['status_label'] == 'Ordered'
    assert view['eta_overdue'] is True
    assert view['eta_soon'] is False
    assert view['eta_text'] == '9 dager over'


def test_describe_changes():
    before = {'status': 'SUBMITTED', 'purchaser_note': None}
    patch = {'status': 'ORDERED', 'purchaser_note': None, 'updated_at': 'x'}
    assert describe_changes(before, patch) == {'status': 'SUBMITTED → ORDERED'}


# ═══════════════════════════════════════════════════════════════════════════════
# PANEL DE COMPRAS
# ═══════════════════════════════════════════════════════════════════════════════

def test_overview_requires_purchaser(client, login_as):
    assert client.get('/api/purchasing/orders', headers=login_as('kunde@firma.no')).status_code == 403
    assert client.get('/api/purchasing/orders', headers=login_as('admin@firma.no', 'admin')).status_code == 200


def test_overview_filters_and_sort(client, login_as, make_product, place_order):
    cheap = make_product('P-1', list_price=10.0)
    pricey = make_product('P-2', list_price=1000.0)
    kari = login_as('kari@firma.no')
    first = place_order(kari, cheap['id'], project_name='Skole Nord', delivery_city='Bergen')
    second = place_order(kari, pricey['id'], project_name='Sykehus Sør')

    purchaser = login_as('inn@firma.no', 'innkjøper')
    client.patch(f"/api/purchasing/orders/{first['id']}", json={'status': 'ORDERED'}, headers=purchaser)

    r = client.get('/api/purchasing/orders', headers=purchaser)
    body = r.get_json()
    assert body['count'] == 2
    assert [o['id'] for o in body['orders']] == [second['id'], first['id']]

    r = client.get('/api/purchasing/orders?sort=OLDEST', headers=purchaser)
    assert [o['id'] for o in r.get_json()['orders']] == [first['id'], second['id']]

    r = client.get('/api/purchasing/orders?sort=TOTAL_ASC', headers=purchaser)
    assert [o['total'] for o in r.get_json()['orders']] == [10.0, 1000.0]

    r = client.get('/api/purchasing/orders?status=ORDERED', headers=purchaser)
    assert [o['id'] for o in r.get_json()['orders']] == [first['id']]

    r = client.get('/api/purchasing/orders?q=bergen', headers=purchaser)
    assert [o['id'] for o in r.get_json()['orders']] == [first['id']]

    r = client.get('/api/purchasing/orders?q=sykehus&status=ALL', headers=purchaser)
    assert [o['id'] for o in r.get_json()['orders']] == [second['id']]

    r = client.get('/api/purchasing/orders?date_from=2999-01-01', headers=purchaser)
    assert r.get_json()['count'] == 0

    r = client.get('/api/purchasing/orders?date_to=2000-01-01', headers=purchaser)
    assert r.get_json()['count'] == 0

    created = parse_date(first['created_at'])
    same_day = {'date_from': created.isoformat(), 'date_to': created.isoformat()}
    r = client.get('/api/purchasing/orders', query_string=same_day, headers=purchaser)
    assert first['id'] in [o['id'] for o in r.get_json()['orders']]

    r = client.get('/api/purchasing/orders', headers=purchaser,
                   query_string={'date_to': (created - timedelta(days=1)).isoformat()})
    assert first['id'] not in [o['id'] for o in r.get_json()['orders']]

    r = client.get('/api/purchasing/orders', headers=purchaser,
                   query_string={'date_from': (created + timedelta(days=1)).isoformat()})
    assert first['id'] not in [o['id'] for o in r.get_json()['orders']]


def test_update_order(client, login_as, make_product, place_order, container):
    product = make_product('P-1')
    kari = login_as('kari@firma.no')
    order = place_order(kari, product['id'])
    purchaser = login_as('inn@firma.no', 'innkjøper', 'Innkjøp AS')
    url = f"/api/purchasing/orders/{order['id']}"

    assert client.patch(url, json={'status': 'ORDERED'}, headers=kari).status_code == 403

    r = client.patch(url, json={'status': 'LOST'}, headers=purchaser)
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Ugyldig status'

    r = client.patch(url, json={'expected_delivery_date': 'neste uke'}, headers=purchaser)
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Ugyldig dato'

    r = client.patch(url, json={'unrelated': 1}, headers=purchaser)
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Nothing to update'

    r = client.patch('/api/purchasing/orders/missing', json={'status': 'ORDERED'}, headers=purchaser)
    assert r.status_code == 404

    r = client.patch(url, json={
        'status': 'confirmed',
        'expected_delivery_date': '2024-06-01',
        'delivery_info': ' Levering på bakdøren ',
        'purchaser_note': '',
    }, headers=purchaser)
    assert r.status_code == 200
    updated = r.get_json()['order']
    assert updated['status'] == 'CONFIRMED'
    assert updated['status_tone'] == 'green'
    assert updated['delivery_info'] == 'Levering på bakdøren'
    assert updated['purchaser_note'] is None
    assert updated['updated_by_name'] == 'Innkjøp AS'
    assert updated['updated_at']

    entries = container.audit_service.list_for_order(order['id'])
    assert entries[0]['action'] == 'updated'
    assert entries[0]['details']['changes']['status'] == 'SUBMITTED → CONFIRMED'
    assert 'updated_by_name' not in entries[0]['details']['changes']

    # Se refleja en la vista del cliente
    r = client.get('/api/orders', headers=kari)
    assert r.get_json()['orders'][0]['status'] == 'CONFIRMED'


def test_update_retries_without_missing_column(client, login_as, make_product, place_order, container,
                                               monkeypatch):
    product = make_product('P-1')
    order = place_order(login_as('kari@firma.no'), product['id'])
    purchaser = login_as('inn@firma.no', 'innkjøper')

    repo = container.order_repo
    original = repo.update_by_id
    patches = []

    def update_without_column(record_id, patch):
        patches.append(dict(patch))
        if 'updated_by_name' in patch:
            raise PlatformError('column orders.updated_by_name does not exist', 400)
        return original(record_id, patch)

    monkeypatch.setattr(repo, 'update_by_id', update_without_column)

    r = client.patch(f"/api/purchasing/orders/{order['id']}", json={'status': 'ORDERED'}, headers=purchaser)
    assert r.status_code == 200
    assert r.get_json()['order']['status'] == 'ORDERED'
    assert len(patches) == 2
    assert 'updated_by_name' not in patches[1]
    assert 'updated_at' in patches[1]


def test_update_propagates_other_platform_errors(client, login_as, make_product, place_order, container,
                                                monkeypatch):
    product = make_product('P-1')
    order = place_order(login_as('kari@firma.no'), product['id'])
    purchaser = login_as('inn@firma.no', 'innkjøper')

    def broken(record_id, patch):
        raise PlatformError('connection reset', 503)

    monkeypatch.setattr(container.order_repo, 'update_by_id', broken)
    r = client.patch(f"/api/purchasing/orders/{order['id']}", json={'status': 'ORDERED'}, headers=purchaser)
    assert r.status_code == 500
    assert r.get_json() == {'ok': False, 'error': 'connection reset'}


# ═══════════════════════════════════════════════════════════════════════════════
# CONFIRMACIONES
# ═══════════════════════════════════════════════════════════════════════════════

def test_confirmation_upload_and_signed_url(client, login_as, make_product, place_order, container):
    product = make_product('P-1')
    kari = login_as('kari@firma.no')
    ola = login_as('ola@firma.no')
    purchaser = login_as('inn@firma.no', 'innkjøper')
    order = place_order(kari, product['id'])

    r = client.get(f"/api/orders/{order['id']}/confirmation-url", headers=kari)
    assert r.status_code == 404

    url = f"/api/purchasing/orders/{order['id']}/confirmation"
    r = client.post(url, data={}, content_type='multipart/form-data', headers=purchaser)
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Velg en fil først.'

    r = client.post(url, data={'file': upload(b'%PDF-1.4 bekreftelse', 'Ordrebekreftelse 1.pdf')},
                    content_type='multipart/form-data', headers=purchaser)
    assert r.status_code == 200
    path = r.get_json()['path']
    assert path.startswith(f"orders/{order['id']}/")
    assert path.endswith('_Ordrebekreftelse_1.pdf')
    assert container.order_repo.get_by_id(order['id'])['confirmation_file_path'] == path

    actions = [e['action'] for e in container.audit_service.list_for_order(order['id'])]
    assert 'confirmation_uploaded' in actions

    r = client.get(f"/api/orders/{order['id']}/confirmation-url", headers=ola)
    assert r.status_code == 403

    r = client.get(f"/api/orders/{order['id']}/confirmation-url", headers=kari)
    assert r.status_code == 200
    signed = r.get_json()['url']
    assert signed.startswith('/api/local-file/order-confirmations/orders/')

    # El enlace firmado funciona sin sesión
    r = client.get(signed)
    assert r.status_code == 200
    assert r.data == b'%PDF-1.4 bekreftelse'
    assert r.headers['Content-Type'] == 'application/pdf'
    assert r.headers['Content-Disposition'].startswith('inline;')

    assert client.get(f"/api/orders/{order['id']}/confirmation-url", headers=purchaser).status_code == 200
