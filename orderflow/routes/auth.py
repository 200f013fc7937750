# ==============================================================================
# RUTAS DE AUTENTICACIÓN
# ==============================================================================
# /auth/login/<provider>   → inicio OAuth (google | azure) con PKCE
# /auth/callback           → canje del código por sesión + chequeo de allowlist
# /auth/logout             → limpia la sesión
# /api/auth/me             → quién soy (email, rol, nombre)
# /api/auth/ensure-allowed → solo verifica la allowlist
# ==============================================================================

import base64
import hashlib
import logging
import secrets
from urllib.parse import quote

from flask import Blueprint, redirect, request, session, url_for

from orderflow.app_container import get_container
from orderflow.platform import AuthError, PlatformError
from orderflow.routes.helpers import SESSION_TOKEN_KEY, current_token
from orderflow.services.access_service import AccessError


logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')
api_auth_bp = Blueprint('api_auth', __name__, url_prefix='/api/auth')

OAUTH_PROVIDERS = ('google', 'azure')
PKCE_SESSION_KEY = 'pkce_verifier'
NEXT_SESSION_KEY = 'login_next'
DEFAULT_NEXT = '/products'


def _pkce_pair():
    """(verifier, challenge S256) para el flujo PKCE."""
    verifier = secrets.token_urlsafe(64)
    digest = hashlib.sha256(verifier.encode('ascii')).digest()
    challenge = base64.urlsafe_b64encode(digest).decode('ascii').rstrip('=')
    return verifier, challenge


def _safe_next(value):
    """Solo paths relativos de la propia app."""
    value = (value or '').strip()
    if value.startswith('/') and not value.startswith('//'):
        return value
    return DEFAULT_NEXT


def _login_redirect(query):
    return redirect(f"/login?{query}")


# ═══════════════════════════════════════════════════════════════════════════════
# LOGIN / CALLBACK / LOGOUT
# ═══════════════════════════════════════════════════════════════════════════════

@auth_bp.route('/login/<provider>', methods=['GET'])
def login(provider):
    """Redirige al proveedor OAuth de la plataforma."""
    provider = (provider or '').strip().lower()
    if provider not in OAUTH_PROVIDERS:
        return {'ok': False, 'error': f'Unknown provider: {provider}'}, 400

    verifier, challenge = _pkce_pair()
    session[PKCE_SESSION_KEY] = verifier
    session[NEXT_SESSION_KEY] = _safe_next(request.args.get('next'))

    auth = get_container().platform.auth
    try:
        url = auth.authorize_url(provider, url_for('auth.callback', _external=True), challenge)
    except PlatformError as e:
        return _login_redirect(f"e={quote(e.message)}")
    return redirect(url)


@auth_bp.route('/callback', methods=['GET'])
def callback():
    """
    Canjea el código OAuth por una sesión.

    - Sin código → /login?e=missing_code
    - Error de canje → /login?e=<mensaje>
    - Email fuera de la allowlist → sesión limpia, /login?denied=1
    - OK → next (por defecto /products)
    """
    error = request.args.get('error')
    if error:
        description = request.args.get('error_description') or error
        return _login_redirect(f"e={quote(description)}")

    code = request.args.get('code')
    if not code:
        return _login_redirect("e=missing_code")

    container = get_container()
    verifier = session.pop(PKCE_SESSION_KEY, None) or ''
    next_url = _safe_next(session.pop(NEXT_SESSION_KEY, None) or request.args.get('next'))

    try:
        result = container.platform.auth.exchange_code_for_session(code, verifier)
    except AuthError as e:
        logger.info("Canje de código OAuth falló: %s", e.message)
        return _login_redirect(f"e={quote(e.message)}")

    token = result.get('access_token')
    if not token:
        return _login_redirect(f"e={quote('No session after exchange')}")

    try:
        member = container.access_service.authenticate(token)
    except AccessError as e:
        session.clear()
        if e.status == 403:
            return _login_redirect("denied=1")
        return _login_redirect(f"e={quote(e.message)}")

    session[SESSION_TOKEN_KEY] = token
    session['refresh_token'] = result.get('refresh_token')
    session['email'] = member.email
    session.permanent = True
    logger.info("Login de %s (%s)", member.email, member.role.value)
    return redirect(next_url)


@auth_bp.route('/logout', methods=['POST'])
def logout():
    session.clear()
    return {'ok': True}


# ═══════════════════════════════════════════════════════════════════════════════
# API
# ═══════════════════════════════════════════════════════════════════════════════

@api_auth_bp.route('/me', methods=['GET'])
def me():
    """{'ok': True, 'email', 'role', 'display_name'} o el error de acceso."""
    try:
        return get_container().access_service.whoami(current_token()), 200
    except AccessError as e:
        return e.payload, e.status


@api_auth_bp.route('/ensure-allowed', methods=['POST'])
def ensure_allowed():
    try:
        get_container().access_service.authenticate(current_token())
    except AccessError as e:
        return e.payload, e.status
    return {'ok': True}, 200
