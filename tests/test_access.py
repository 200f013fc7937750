from conftest import ADMIN_PANEL_EMAIL, ADMIN_PANEL_PASSWORD, bearer

from orderflow.services.access_service import bearer_token, normalize_role, parse_role
from orderflow.models import Role


def admin_panel_headers(container):
    headers = bearer(container, ADMIN_PANEL_EMAIL)
    headers['X-Admin-Password'] = ADMIN_PANEL_PASSWORD
    return headers


def test_me_requires_token(client):
    r = client.get('/api/auth/me')
    assert r.status_code == 401
    assert r.get_json() == {'ok': False, 'error': 'Missing bearer token'}

    r = client.get('/api/auth/me', headers={'Authorization': 'Bearer nope'})
    assert r.status_code == 401
    assert r.get_json()['error'] == 'Invalid session'


def test_me_denied_outside_allowlist(client, container):
    r = client.get('/api/auth/me', headers=bearer(container, 'stranger@example.com'))
    assert r.status_code == 403
    assert r.get_json() == {'ok': False, 'denied': True}

    r = client.post('/api/auth/ensure-allowed', headers=bearer(container, 'stranger@example.com'))
    assert r.status_code == 403


def test_me_returns_role_and_name(client, login_as):
    headers = login_as('kari@firma.no', 'innkjøper', 'Kari')
    r = client.get('/api/auth/me', headers=headers)
    assert r.status_code == 200
    assert r.get_json() == {'ok': True, 'email': 'kari@firma.no', 'role': 'innkjøper', 'display_name': 'Kari'}

    r = client.post('/api/auth/ensure-allowed', headers=headers)
    assert r.status_code == 200
    assert r.get_json() == {'ok': True}


def test_unknown_role_in_allowlist_is_kunde(client, login_as):
    headers = login_as('ola@firma.no', 'superuser')
    r = client.get('/api/auth/me', headers=headers)
    assert r.get_json()['role'] == 'kunde'


def test_email_is_case_insensitive(client, login_as, container):
    login_as('per@firma.no')
    r = client.get('/api/auth/me', headers=bearer(container, 'Per@Firma.NO'))
    assert r.status_code == 200
    assert r.get_json()['email'] == 'per@firma.no'


def test_bearer_scheme_parsing():
    assert bearer_token('Bearer abc') == 'abc'
    assert bearer_token('bearer   abc ') == 'abc'
    assert bearer_token('Basic abc') is None
    assert bearer_token(None) is None


def test_role_parsing():
    assert parse_role('innkjoper') == Role.INNKJOPER
    assert parse_role('Purchaser') == Role.INNKJOPER
    assert parse_role(' ADMIN ') == Role.ADMIN
    assert parse_role('boss') is None
    assert normalize_role('boss') == Role.KUNDE
    assert normalize_role(None) == Role.KUNDE


# ═══════════════════════════════════════════════════════════════════════════════
# ALLOWLIST ADMIN
# ═══════════════════════════════════════════════════════════════════════════════

def test_allowlist_admin_gate(client, container):
    r = client.get('/api/admin/allowlist')
    assert r.status_code == 401
    assert r.get_json()['error'] == 'Bad admin password'

    r = client.get('/api/admin/allowlist', headers={'X-Admin-Password': 'feil'})
    assert r.status_code == 401

    r = client.get('/api/admin/allowlist', headers={'X-Admin-Password': ADMIN_PANEL_PASSWORD})
    assert r.status_code == 401
    assert r.get_json()['error'] == 'Missing bearer token'

    headers = bearer(container, 'someone@firma.no')
    headers['X-Admin-Password'] = ADMIN_PANEL_PASSWORD
    r = client.get('/api/admin/allowlist', headers=headers)
    assert r.status_code == 403
    assert r.get_json()['error'] == 'Not an admin'


def test_allowlist_crud(client, container):
    headers = admin_panel_headers(container)

    r = client.post('/api/admin/allowlist', json={'email': ' New@Firma.no ', 'role': 'innkjoper'}, headers=headers)
    assert r.status_code == 200
    assert r.get_json() == {'ok': True}

    rows = client.get('/api/admin/allowlist', headers=headers).get_json()['rows']
    assert [(row['email'], row['role']) for row in rows] == [('new@firma.no', 'innkjøper')]

    r = client.post('/api/admin/allowlist', json={'email': 'not-an-email'}, headers=headers)
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Invalid email'

    r = client.patch('/api/admin/allowlist', json={'email': 'new@firma.no', 'role': 'boss'}, headers=headers)
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Invalid role'

    r = client.patch('/api/admin/allowlist', json={'email': 'new@firma.no', 'role': None, 'display_name': 'Nina'},
                     headers=headers)
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Invalid role'

    r = client.patch('/api/admin/allowlist', json={'email': 'new@firma.no'}, headers=headers)
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Nothing to update'

    r = client.patch('/api/admin/allowlist', json={'email': 'new@firma.no', 'display_name': ' Nina '}, headers=headers)
    assert r.status_code == 200
    assert container.allowlist_repo.get_by_email('new@firma.no')['display_name'] == 'Nina'

    r = client.delete('/api/admin/allowlist?email=NEW@firma.no', headers=headers)
    assert r.status_code == 200
    assert container.allowlist_repo.get_by_email('new@firma.no') is None

    r = client.delete('/api/admin/allowlist', headers=headers)
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Missing email'


def test_unknown_role_on_add_defaults_to_kunde(client, container):
    headers = admin_panel_headers(container)
    client.post('/api/admin/allowlist', json={'email': 'x@firma.no', 'role': 'boss'}, headers=headers)
    assert container.allowlist_repo.get_by_email('x@firma.no')['role'] == 'kunde'


def test_login_code_callback_sets_session(client, container, login_as):
    login_as('kari@firma.no')
    code = container.platform.issue_login_code('kari@firma.no')

    r = client.get(f'/auth/callback?code={code}')
    assert r.status_code == 302
    assert r.headers['Location'].endswith('/products')

    # La sesión sirve sin header Authorization
    r = client.get('/api/auth/me')
    assert r.status_code == 200
    assert r.get_json()['email'] == 'kari@firma.no'

    r = client.post('/auth/logout')
    assert r.get_json() == {'ok': True}
    assert client.get('/api/auth/me').status_code == 401


def test_callback_errors(client, container):
    r = client.get('/auth/callback')
    assert r.headers['Location'].endswith('/login?e=missing_code')

    r = client.get('/auth/callback?code=garbage')
    assert '/login?e=' in r.headers['Location']

    code = container.platform.issue_login_code('stranger@example.com')
    r = client.get(f'/auth/callback?code={code}')
    assert r.headers['Location'].endswith('/login?denied=1')


def test_oauth_login_unknown_provider(client):
    r = client.get('/auth/login/github')
    assert r.status_code == 400


def test_oauth_login_on_local_platform_redirects_with_error(client):
    r = client.get('/auth/login/google')
    assert r.status_code == 302
    assert '/login?e=' in r.headers['Location']
