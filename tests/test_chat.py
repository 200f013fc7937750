from orderflow.services.chat_service import MAX_MESSAGE_LENGTH


def test_chat_between_customer_and_purchaser(client, login_as, make_product, place_order):
    product = make_product('P-1')
    kari = login_as('kari@firma.no', display_name='Kari')
    purchaser = login_as('inn@firma.no', 'innkjøper')
    order = place_order(kari, product['id'])
    url = f"/api/orders/{order['id']}/messages"

    r = client.post(url, json={'body': '  Når kommer varene?  '}, headers=kari)
    assert r.status_code == 201
    first = r.get_json()['message']
    assert first['body'] == 'Når kommer varene?'
    assert first['author_name'] == 'Kari'
    assert first['order_id'] == order['id']

    r = client.post(url, json={'body': 'Uke 22'}, headers=purchaser)
    assert r.status_code == 201
    assert r.get_json()['message']['author_name'] == 'inn@firma.no'

    r = client.get(url, headers=kari)
    assert [m['body'] for m in r.get_json()['messages']] == ['Når kommer varene?', 'Uke 22']

    r = client.get(url, query_string={'after': first['created_at']}, headers=kari)
    assert [m['body'] for m in r.get_json()['messages']] == ['Uke 22']


def test_chat_validation(client, login_as, make_product, place_order):
    product = make_product('P-1')
    kari = login_as('kari@firma.no')
    order = place_order(kari, product['id'])
    url = f"/api/orders/{order['id']}/messages"

    r = client.post(url, json={'body': '   '}, headers=kari)
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Meldingen er tom'

    r = client.post(url, json={'body': 'x' * (MAX_MESSAGE_LENGTH + 1)}, headers=kari)
    assert r.status_code == 400

    r = client.post(url, json={'body': 'x' * MAX_MESSAGE_LENGTH}, headers=kari)
    assert r.status_code == 201


def test_chat_hidden_from_other_customers(client, login_as, make_product, place_order):
    product = make_product('P-1')
    order = place_order(login_as('kari@firma.no'), product['id'])
    ola = login_as('ola@firma.no')
    url = f"/api/orders/{order['id']}/messages"

    assert client.get(url, headers=ola).status_code == 404
    assert client.post(url, json={'body': 'Hei'}, headers=ola).status_code == 404
    assert client.get('/api/orders/missing/messages', headers=ola).status_code == 404
