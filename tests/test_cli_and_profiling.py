import json
import os

import pytest

from orderflow import performance_logger
from orderflow.app_container import AppContainer
from orderflow.main import create_app


# ═══════════════════════════════════════════════════════════════════════════════
# CLI
# ═══════════════════════════════════════════════════════════════════════════════

def test_issue_token_command(app, platform):
    runner = app.test_cli_runner()
    result = runner.invoke(args=['orderflow', 'issue-token', 'Kari@Firma.no'])
    assert result.exit_code == 0
    token = result.output.strip()
    assert platform.auth.get_user(token)['email'] == 'kari@firma.no'


def test_login_link_command(app, client, login_as):
    login_as('kari@firma.no')
    runner = app.test_cli_runner()
    result = runner.invoke(args=['orderflow', 'login-link', 'kari@firma.no', '--base-url', 'http://intern.firma.no/'])
    assert result.exit_code == 0
    link = result.output.strip()
    assert link.startswith('http://intern.firma.no/auth/callback?code=')

    r = client.get(link.replace('http://intern.firma.no', ''))
    assert r.status_code == 302
    assert client.get('/api/auth/me').get_json()['email'] == 'kari@firma.no'


def test_import_command(app, container, tmp_path):
    good = tmp_path / 'produkter.csv'
    good.write_text('product_no,name\nP-1,Drill\n', encoding='utf-8')
    bad = tmp_path / 'feil.csv'
    bad.write_text('product_no,name\n,Uten nummer\n', encoding='utf-8')
    runner = app.test_cli_runner()

    result = runner.invoke(args=['orderflow', 'import', str(good), '--preview'])
    assert result.exit_code == 0
    assert json.loads(result.output)['rows'] == 1
    assert container.product_repo.list_for_admin() == []

    result = runner.invoke(args=['orderflow', 'import', str(good)])
    assert result.exit_code == 0
    assert json.loads(result.output)['products_upserted'] == 1

    result = runner.invoke(args=['orderflow', 'import', str(bad)])
    assert result.exit_code == 1
    assert json.loads(result.output)['details'] == ['Rad 2: product_no mangler.']


# ═══════════════════════════════════════════════════════════════════════════════
# PROFILING
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.fixture
def profiled_app(settings):
    settings.enable_profiling = True
    app = create_app(settings)
    yield app
    AppContainer.reset_instance()
    performance_logger.configure(enabled=False)
    performance_logger.reset_stats()


def test_route_profiling_writes_performance_log(profiled_app, settings):
    with profiled_app.test_client() as c:
        c.get('/api/auth/me')

    log_path = os.path.join(settings.logs_dir, performance_logger.PERFORMANCE_LOG_NAME)
    with open(log_path, encoding='utf-8') as f:
        content = f.read()
    assert 'Acción: Quién soy' in content
    assert 'Usuario: anónimo' in content


def test_profile_function_collects_stats(profiled_app):
    performance_logger.reset_stats()

    @performance_logger.profile_function(name='Suma')
    def add(a, b):
        return a + b

    assert add(1, 2) == 3
    assert add(2, 2) == 4
    stats = performance_logger.get_function_stats()
    assert stats['Suma']['calls'] == 2


def test_profile_function_disabled_is_passthrough():
    performance_logger.configure(enabled=False)
    performance_logger.reset_stats()

    @performance_logger.profile_function
    def noop():
        return 'ok'

    assert noop() == 'ok'
    assert performance_logger.get_function_stats() == {}


def test_route_names():
    assert performance_logger._get_route_name('GET', '/api/orders/abc', '/api/orders/<order_id>') == 'Ver pedido'
    assert performance_logger._get_route_name('GET', '/other') == 'GET /other'
