import io

import pytest

from orderflow.app_container import AppContainer
from orderflow.config import Settings
from orderflow.main import create_app


ADMIN_PANEL_EMAIL = 'boss@firma.no'
ADMIN_PANEL_PASSWORD = 'hemmelig'


@pytest.fixture
def settings(tmp_path):
    return Settings(
        secret_key='test-secret',
        access_admin_emails=frozenset([ADMIN_PANEL_EMAIL]),
        access_admin_password=ADMIN_PANEL_PASSWORD,
        data_dir=str(tmp_path / 'data'),
        file_storage_root=str(tmp_path / 'files'),
        logs_dir=str(tmp_path / 'logs'),
        enable_profiling=False,
        log_level='WARNING',
    )


@pytest.fixture
def app(settings):
    app = create_app(settings)
    app.config['TESTING'] = True
    yield app
    AppContainer.reset_instance()


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c


@pytest.fixture
def container(app):
    return app.extensions['orderflow']


@pytest.fixture
def platform(container):
    return container.platform


@pytest.fixture
def login_as(container):
    """Agrega el email a la allowlist y devuelve headers con su token."""
    def _login(email, role='kunde', display_name=None):
        container.allowlist_repo.upsert_entry(email, role, display_name)
        return bearer(container, email)
    return _login


def bearer(container, email):
    return {'Authorization': f'Bearer {container.platform.issue_token(email)}'}


@pytest.fixture
def make_product(container):
    def _make(product_no, name=None, list_price=100.0, is_active=True):
        return container.product_repo.insert({
            'product_no': product_no,
            'name': name or product_no,
            'list_price': list_price,
            'is_active': is_active,
        })
    return _make


@pytest.fixture
def place_order(client):
    """Llena el carrito y hace checkout; devuelve el pedido creado."""
    def _place(headers, product_id, qty=1, project_name='Nybygg Sentrum', **form):
        r = client.post('/api/cart/items', json={'product_id': product_id, 'qty': qty}, headers=headers)
        assert r.status_code == 200, r.get_json()
        body = {
            'project_name': project_name,
            'contact_name': 'Kari Nordmann',
            'delivery_address': 'Storgata 1',
        }
        body.update(form)
        r = client.post('/api/orders', json=body, headers=headers)
        assert r.status_code == 201, r.get_json()
        return r.get_json()['order']
    return _place


def upload(data, file_name):
    """Archivo para multipart del test client."""
    return (io.BytesIO(data), file_name)
