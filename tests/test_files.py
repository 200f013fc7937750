import pytest

from orderflow.platform import PlatformError
from orderflow.services.file_service import SignedUrlCache, clamp_expires, safe_file_name


def test_clamp_expires():
    assert clamp_expires(None) == 600
    assert clamp_expires('abc') == 600
    assert clamp_expires(0) == 600
    assert clamp_expires(5) == 60
    assert clamp_expires('120') == 120
    assert clamp_expires(99999) == 3600


def test_safe_file_name():
    assert safe_file_name('C:\\tmp\\min fil.pdf') == 'min_fil.pdf'
    assert safe_file_name('../../etc/passwd') == 'passwd'
    assert safe_file_name('') == 'file'


def test_signed_url_cache_reuses_until_margin():
    now = [1000.0]
    cache = SignedUrlCache(clock=lambda: now[0])
    cache.set('product-images', 'a.png', False, 'url-1', 600)

    assert cache.get('product-images', 'a.png', False, 600) == 'url-1'
    assert cache.get('product-images', 'a.png', True, 600) is None

    # Margen: 20% de 600 = 120 s
    now[0] += 600 - 121
    assert cache.get('product-images', 'a.png', False, 600) == 'url-1'
    now[0] += 2
    assert cache.get('product-images', 'a.png', False, 600) is None
    assert len(cache) == 0


def test_signed_url_cache_drops_expired_entries_on_set():
    now = [0.0]
    cache = SignedUrlCache(clock=lambda: now[0])
    for i in range(1000):
        cache.set('product-images', f'products/{i}.png', False, f'url-{i}', 60)
    assert len(cache) == 1000

    now[0] += 10000
    cache.set('product-images', 'products/ny.png', False, 'url-ny', 60)
    assert len(cache) == 1
    assert cache.purge_expired() == 0


def test_signed_url_cache_keys_on_lifetime():
    cache = SignedUrlCache(clock=lambda: 1000.0)
    cache.set('product-files', 'a.pdf', False, 'url-lang', 3600)

    assert cache.get('product-files', 'a.pdf', False, 60) is None
    assert cache.get('product-files', 'a.pdf', False, 3600) == 'url-lang'


def test_signed_url_cache_invalidate():
    cache = SignedUrlCache()
    cache.set('b', 'p', False, 'u1', 600)
    cache.set('b', 'p', True, 'u2', 600)
    cache.set('b', 'q', False, 'u3', 600)
    cache.invalidate('b', 'p')
    assert len(cache) == 1


def test_local_storage_rejects_traversal(platform):
    with pytest.raises(PlatformError):
        platform.storage.resolve('../outside.txt')
    with pytest.raises(PlatformError):
        platform.storage.resolve('')


# ═══════════════════════════════════════════════════════════════════════════════
# /api/files/signed-url
# ═══════════════════════════════════════════════════════════════════════════════

def test_signed_url_validation(client, login_as):
    headers = login_as('kunde@firma.no')

    assert client.get('/api/files/signed-url?path=x').status_code == 401

    r = client.get('/api/files/signed-url?path=x', headers=headers)
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Missing bucket'

    r = client.get('/api/files/signed-url?bucket=order-confirmations&path=x', headers=headers)
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Invalid bucket: order-confirmations'

    r = client.get('/api/files/signed-url?bucket=product-images', headers=headers)
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Missing path'

    r = client.get('/api/files/signed-url?bucket=product-images&path=missing.png', headers=headers)
    assert r.status_code == 500
    assert r.get_json()['error'] == 'Could not sign'


def test_signed_url_clamps_expiry(client, login_as, platform):
    platform.storage.upload('product-files', 'products/p1/files/manual.pdf', b'%PDF')
    headers = login_as('kunde@firma.no')

    r = client.get('/api/files/signed-url?bucket=product-files&path=products/p1/files/manual.pdf&expires=99999',
                   headers=headers)
    assert r.status_code == 200
    assert r.get_json()['expires_in'] == 3600

    r = client.get('/api/files/signed-url?bucket=product-files&path=products/p1/files/manual.pdf'
                   '&expires=5&download=1', headers=headers)
    body = r.get_json()
    assert body['expires_in'] == 60
    assert body['url'].endswith('&download=1')


# ═══════════════════════════════════════════════════════════════════════════════
# /api/local-file
# ═══════════════════════════════════════════════════════════════════════════════

def test_local_file_with_signed_token(client, platform):
    platform.storage.upload('product-images', 'products/p1/images/1_foto.png', b'\x89PNG')
    url = platform.storage.create_signed_url('product-images', 'products/p1/images/1_foto.png', 600)

    r = client.get(url)
    assert r.status_code == 200
    assert r.data == b'\x89PNG'
    assert r.headers['Content-Type'] == 'image/png'
    assert r.headers['Content-Disposition'] == 'inline; filename="1_foto.png"'
    assert r.headers['Cache-Control'] == 'private, max-age=60'
    assert r.headers['Vary'] == 'Authorization, Cookie'
    assert r.headers['Content-Length'] == '4'

    r = client.get(url + '&download=1')
    assert r.headers['Content-Disposition'].startswith('attachment;')


def test_local_file_token_is_bound_to_path(client, platform):
    platform.storage.upload('product-images', 'a.png', b'a')
    platform.storage.upload('product-images', 'b.png', b'b')
    url = platform.storage.create_signed_url('product-images', 'a.png', 600)
    token = url.split('token=', 1)[1]

    r = client.get(f'/api/local-file/product-images/b.png?token={token}')
    assert r.status_code == 401


def test_local_file_with_member_session(client, platform, login_as):
    platform.storage.upload('product-files', 'notes.txt', 'hei'.encode('utf-8'))
    headers = login_as('kunde@firma.no')

    assert client.get('/api/local-file/product-files/notes.txt').status_code == 401

    r = client.get('/api/local-file/product-files/notes.txt', headers=headers)
    assert r.status_code == 200
    assert r.headers['Content-Type'] == 'text/plain; charset=utf-8'
    assert r.headers['Content-Disposition'].startswith('attachment;')

    r = client.get('/api/local-file/product-files/nothing.txt', headers=headers)
    assert r.status_code == 404
    assert r.data == b'Not found'


def test_local_file_rejects_traversal(client, login_as):
    headers = login_as('kunde@firma.no')
    r = client.get('/api/local-file/product-files/..%2F..%2Foutside.txt', headers=headers)
    assert r.status_code == 400
    assert r.data == b'Bad request'


def test_local_file_confirmations_need_signed_link(client, platform, login_as):
    platform.storage.upload('order-confirmations', 'orders/o1/1_bekreftelse.pdf', b'%PDF')
    headers = login_as('ola@firma.no')

    r = client.get('/api/local-file/order-confirmations/orders/o1/1_bekreftelse.pdf', headers=headers)
    assert r.status_code == 401
    assert r.get_json() == {'ok': False, 'error': 'Signed link required'}

    url = platform.storage.create_signed_url('order-confirmations', 'orders/o1/1_bekreftelse.pdf', 600)
    r = client.get(url)
    assert r.status_code == 200
    assert r.data == b'%PDF'


def test_security_headers(client):
    r = client.get('/api/auth/me')
    assert r.headers['X-Frame-Options'] == 'DENY'
    assert r.headers['X-Content-Type-Options'] == 'nosniff'


def test_unknown_api_route_is_json(client):
    r = client.get('/api/nothing-here')
    assert r.status_code == 404
    assert r.get_json() == {'ok': False, 'error': 'Not Found'}
