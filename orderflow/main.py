# ==============================================================================
# APLICACIÓN FLASK - App factory
# ==============================================================================
# create_app() arma la aplicación:
#   1. Configuración (entorno/.env o Settings explícitos)
#   2. Logging y profiling
#   3. Contenedor de dependencias (plataforma, repos, servicios)
#   4. Blueprints, errores JSON y headers de seguridad
#   5. Comandos CLI (flask orderflow ...)
# ==============================================================================

import logging

from flask import Flask, request
from werkzeug.exceptions import HTTPException

from orderflow.app_container import AppContainer, get_container
from orderflow.cli import register_cli
from orderflow.config import Settings, configure_logging
from orderflow.performance_logger import configure as configure_profiling
from orderflow.performance_logger import init_profiling
from orderflow.platform import IPlatform, PlatformError
from orderflow.routes import register_blueprints


logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 50 * 1024 * 1024  # 50 MB


def create_app(settings: Settings = None, platform: IPlatform = None) -> Flask:
    """
    Crea la aplicación Flask.

    Args:
        settings: Configuración (por defecto Settings.from_env())
        platform: Plataforma ya construida (tests); por defecto según settings

    Returns:
        Aplicación Flask lista para servir
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = Flask(__name__)
    app.secret_key = settings.secret_key

    # ═══════════════════════════════════════════════════════════════════════
    # CONFIGURACIÓN DE SESIONES
    # ═══════════════════════════════════════════════════════════════════════
    app.config.update(
        SESSION_COOKIE_HTTPONLY=True,      # Protege contra XSS
        SESSION_COOKIE_SECURE=settings.production_mode,
        SESSION_COOKIE_SAMESITE='Lax',     # Protección CSRF básica
        PERMANENT_SESSION_LIFETIME=86400,  # 24 horas
        MAX_CONTENT_LENGTH=MAX_UPLOAD_BYTES,
        ORDERFLOW_SETTINGS=settings,
    )

    # ═══════════════════════════════════════════════════════════════════════
    # PROFILING
    # ═══════════════════════════════════════════════════════════════════════
    # Logs en <logs_dir>/. Para desactivar: ENABLE_PROFILING=0
    configure_profiling(settings.logs_dir, settings.enable_profiling)
    init_profiling(app)

    # ═══════════════════════════════════════════════════════════════════════
    # CONTENEDOR DE DEPENDENCIAS
    # ═══════════════════════════════════════════════════════════════════════
    # Una app = un contenedor; crear otra app reemplaza el anterior.
    AppContainer.reset_instance()
    container = get_container(settings, platform)
    app.extensions['orderflow'] = container

    if settings.uses_local_platform:
        logger.info("Plataforma LOCAL (datos en %s)", settings.data_dir)
    else:
        logger.info("Plataforma REST: %s", settings.platform_url)

    register_blueprints(app)
    _register_error_handlers(app)
    _register_security_headers(app)
    register_cli(app)

    return app


# ═══════════════════════════════════════════════════════════════════════════════
# ERRORES
# ═══════════════════════════════════════════════════════════════════════════════

def _register_error_handlers(app: Flask) -> None:

    @app.errorhandler(PlatformError)
    def handle_platform_error(e: PlatformError):
        logger.error("Error de plataforma en %s %s: %s", request.method, request.path, e.message)
        return {'ok': False, 'error': e.message}, 500

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        # Fuera de /api/ se mantiene la respuesta HTML de werkzeug
        if not request.path.startswith('/api/'):
            return e
        return {'ok': False, 'error': e.name}, e.code


def _register_security_headers(app: Flask) -> None:

    @app.after_request
    def set_security_headers(response):
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['Referrer-Policy'] = 'no-referrer-when-downgrade'
        response.headers['Permissions-Policy'] = 'geolocation=(), microphone=()'
        # HSTS solo con HTTPS real
        if request.is_secure:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        return response
