# ==============================================================================
# COMANDOS CLI - flask orderflow ...
# ==============================================================================
# issue-token EMAIL  → token de acceso (solo plataforma local)
# login-link EMAIL   → enlace de login /auth/callback?code=... (solo local)
# import FILE        → importación masiva desde .xlsx / .csv
# ==============================================================================

import json
import os

import click
from flask import current_app
from flask.cli import AppGroup

from orderflow.platform import LocalPlatform


orderflow_cli = AppGroup('orderflow', help='Comandos de administración de OrderFlow.')


def _container():
    return current_app.extensions['orderflow']


def _local_platform() -> LocalPlatform:
    platform = _container().platform
    if not isinstance(platform, LocalPlatform):
        raise click.ClickException("Solo disponible con la plataforma local (PLATFORM_URL vacío).")
    return platform


@orderflow_cli.command('issue-token')
@click.argument('email')
def issue_token(email):
    """Emite un token de acceso para EMAIL."""
    click.echo(_local_platform().issue_token(email))


@orderflow_cli.command('login-link')
@click.argument('email')
@click.option('--base-url', default='http://localhost:5000', show_default=True)
def login_link(email, base_url):
    """Enlace de login de un solo uso (10 minutos) para EMAIL."""
    code = _local_platform().issue_login_code(email)
    click.echo(f"{base_url.rstrip('/')}/auth/callback?code={code}")


@orderflow_cli.command('import')
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--preview', is_flag=True, help='Solo validar, sin escribir.')
def import_products(file_path, preview):
    """Importa productos desde FILE_PATH (.xlsx o .csv)."""
    from orderflow.services.import_service import ImportFileError, parse_file

    with open(file_path, 'rb') as f:
        data = f.read()
    try:
        rows = parse_file(os.path.basename(file_path), data)
    except ImportFileError as e:
        raise click.ClickException(str(e)) from e

    service = _container().import_service
    result = service.preview(rows) if preview else service.run_import(rows)
    if preview:
        result = {k: v for k, v in result.items() if k != 'rows'}
        result['rows'] = len(rows)
    click.echo(json.dumps(result, ensure_ascii=False, indent=2))
    if not result.get('ok') or result.get('errors'):
        raise click.exceptions.Exit(1)


def register_cli(app):
    app.cli.add_command(orderflow_cli)
