# ==============================================================================
# PROFILING DE PETICIONES Y SERVICIOS
# ==============================================================================
# Mide cuánto tardan las rutas de la API y los servicios pesados (checkout,
# panel de compras, importación masiva) y lo deja en archivos de texto
# legibles dentro de Settings.logs_dir:
#
#   performance.log     → una entrada por petición
#   slow_routes.log     → peticiones por encima de los umbrales
#   slow_functions.log  → llamadas lentas a funciones decoradas
#
# Se activa con ENABLE_PROFILING. Desactivado, los hooks no se registran y
# los decoradores llaman directamente a la función.
# ==============================================================================

import logging
import os
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from functools import wraps
from typing import Callable, Dict, Iterable, Optional, Tuple


logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════
# UMBRALES Y ARCHIVOS
# ═══════════════════════════════════════════════════════════════════════════

THRESHOLD_WARNING = 300   # ms
THRESHOLD_CRITICAL = 700  # ms

PERFORMANCE_LOG_NAME = 'performance.log'
SLOW_ROUTES_LOG_NAME = 'slow_routes.log'
SLOW_FUNCTIONS_LOG_NAME = 'slow_functions.log'

ANONYMOUS_USER = 'anónimo'
SEPARATOR = '─' * 40

_state = {
    'enabled': False,
    'logs_dir': os.path.join(os.getcwd(), 'logs'),
}

# "MÉTODO regla" → acción legible en los logs
ROUTE_NAMES = {
    # Sesión
    'GET /auth/login/<provider>': 'Iniciar sesión (OAuth)',
    'GET /auth/callback': 'Callback de login',
    'POST /auth/logout': 'Cerrar sesión',
    'GET /api/auth/me': 'Quién soy',
    'POST /api/auth/ensure-allowed': 'Verificar allowlist',

    # Catálogo
    'GET /api/products': 'Ver productos',
    'POST /api/products': 'Crear producto',
    'GET /api/products/<product_id>': 'Ver detalle de producto',
    'PATCH /api/products/<product_id>': 'Editar producto',
    'DELETE /api/products/<product_id>': 'Eliminar producto',
    'POST /api/products/<product_id>/thumbnail': 'Subir miniatura',
    'DELETE /api/products/<product_id>/thumbnail': 'Quitar miniatura',
    'POST /api/products/<product_id>/images': 'Subir imágenes',
    'DELETE /api/products/images/<image_id>': 'Eliminar imagen',
    'POST /api/products/<product_id>/files': 'Subir documentos',
    'DELETE /api/products/files/<file_id>': 'Eliminar documento',
    'POST /api/products/<product_id>/relations': 'Agregar relación',
    'DELETE /api/products/relations/<relation_id>': 'Quitar relación',
    'POST /api/products/import': 'Importación masiva',

    # Carrito
    'GET /api/cart': 'Ver carrito',
    'DELETE /api/cart': 'Vaciar carrito',
    'POST /api/cart/items': 'Agregar al carrito',
    'PATCH /api/cart/items/<product_id>': 'Cambiar cantidad',
    'DELETE /api/cart/items/<product_id>': 'Eliminar del carrito',

    # Pedidos
    'GET /api/orders': 'Ver pedidos',
    'POST /api/orders': 'Crear pedido (checkout)',
    'GET /api/orders/<order_id>': 'Ver pedido',
    'GET /api/orders/<order_id>/confirmation-url': 'Enlace de confirmación',
    'GET /api/orders/<order_id>/messages': 'Ver chat de pedido',
    'POST /api/orders/<order_id>/messages': 'Enviar mensaje',
    'GET /api/orders/<order_id>/audit': 'Ver auditoría de pedido',

    # Compras
    'GET /api/purchasing/orders': 'Ver panel de compras',
    'PATCH /api/purchasing/orders/<order_id>': 'Actualizar pedido',
    'POST /api/purchasing/orders/<order_id>/confirmation': 'Subir confirmación',

    # Administración
    'GET /api/admin/allowlist': 'Ver allowlist',
    'POST /api/admin/allowlist': 'Agregar a allowlist',
    'PATCH /api/admin/allowlist': 'Editar allowlist',
    'DELETE /api/admin/allowlist': 'Quitar de allowlist',
    'DELETE /api/admin/orders/<order_id>': 'Eliminar pedido',

    # Archivos
    'GET /api/files/signed-url': 'Firmar enlace',
    'GET /api/local-file/<path:relative_path>': 'Descargar archivo local',
}


def configure(logs_dir: Optional[str] = None, enabled: bool = True) -> None:
    """
    Fija la carpeta de logs y activa o desactiva el profiling.

    Lo llama create_app() con los valores de Settings antes de init_profiling().
    """
    if logs_dir:
        _state['logs_dir'] = logs_dir
    _state['enabled'] = bool(enabled)


def is_enabled() -> bool:
    return _state['enabled']


# ═══════════════════════════════════════════════════════════════════════════
# ESCRITURA
# ═══════════════════════════════════════════════════════════════════════════

_file_lock = threading.Lock()


def _now_text() -> str:
    return datetime.now().strftime('%Y-%m-%d %H:%M:%S')


def _block(header: str, fields: Iterable[Tuple[str, str]], closing: bool = False) -> str:
    lines = ['', header, SEPARATOR]
    lines.extend(f"{label}: {value}" for label, value in fields)
    if closing:
        lines.append(SEPARATOR)
    return '\n'.join(lines) + '\n'


def _append(file_name: str, text: str) -> None:
    path = os.path.join(_state['logs_dir'], file_name)
    try:
        with _file_lock:
            os.makedirs(_state['logs_dir'], exist_ok=True)
            with open(path, 'a', encoding='utf-8') as f:
                f.write(text)
    except OSError as e:
        logger.warning("No se pudo escribir %s: %s", path, e)


def _severity(time_ms: float) -> Optional[str]:
    if time_ms >= THRESHOLD_CRITICAL:
        return 'CRITICAL'
    if time_ms >= THRESHOLD_WARNING:
        return 'WARNING'
    return None


def _get_route_name(method: str, path: str, rule: Optional[str] = None) -> str:
    """Nombre legible de la ruta; primero por path exacto, después por regla."""
    for candidate in (path, rule):
        if candidate:
            name = ROUTE_NAMES.get(f"{method} {candidate}")
            if name:
                return name
    return f"{method} {path}"


# ═══════════════════════════════════════════════════════════════════════════
# RUTAS
# ═══════════════════════════════════════════════════════════════════════════

def log_route_performance(method: str, path: str, rule: Optional[str], time_ms: float,
                          user: Optional[str] = None) -> None:
    if not is_enabled():
        return
    _append(PERFORMANCE_LOG_NAME, _block(
        '═' * 40 + f"\n[PERFORMANCE] {_now_text()}",
        [
            ('Acción', _get_route_name(method, path, rule)),
            ('Usuario', user or ANONYMOUS_USER),
            ('Ruta', f"{method} {path}"),
            ('Tiempo', f"{time_ms:.0f} ms"),
        ],
    ))


def log_slow_route(method: str, path: str, rule: Optional[str], time_ms: float,
                   user: Optional[str] = None, level: str = 'WARNING') -> None:
    """Entrada en slow_routes.log; level es 'WARNING' o 'CRITICAL'."""
    if not is_enabled():
        return
    critical = level == 'CRITICAL'
    threshold = THRESHOLD_CRITICAL if critical else THRESHOLD_WARNING
    _append(SLOW_ROUTES_LOG_NAME, _block(
        f"{'🔴' if critical else '⚠️'} [{level}] {_now_text()}",
        [
            (f"Ruta {'MUY LENTA' if critical else 'LENTA'}", _get_route_name(method, path, rule)),
            ('Usuario', user or ANONYMOUS_USER),
            ('Detalle', f"{method} {path}"),
            ('Tiempo', f"{time_ms:.0f} ms (umbral: {threshold} ms)"),
        ],
        closing=True,
    ))


def init_profiling(app) -> None:
    """
    Registra los hooks de medición en la app Flask.

    El usuario del log es el miembro autenticado de la petición (g.member),
    si no el email guardado en la sesión, si no 'anónimo'.
    """
    if not is_enabled():
        return

    from flask import g, request, session

    @app.before_request
    def _profiling_start():
        g.profiling_started = time.perf_counter()

    @app.after_request
    def _profiling_finish(response):
        started = g.pop('profiling_started', None)
        if started is None:
            return response

        elapsed_ms = (time.perf_counter() - started) * 1000
        rule = request.url_rule.rule if request.url_rule else None
        member = g.get('member')
        user = member.email if member else session.get('email')

        log_route_performance(request.method, request.path, rule, elapsed_ms, user)
        level = _severity(elapsed_ms)
        if level:
            log_slow_route(request.method, request.path, rule, elapsed_ms, user, level)
        return response


# ═══════════════════════════════════════════════════════════════════════════
# FUNCIONES
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class FunctionStats:
    calls: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0

    def add(self, elapsed_ms: float) -> None:
        self.calls += 1
        self.total_ms += elapsed_ms
        self.max_ms = max(self.max_ms, elapsed_ms)

    def summary(self) -> Dict[str, float]:
        average = self.total_ms / self.calls if self.calls else 0
        return {
            'calls': self.calls,
            'avg_time': round(average, 2),
            'max_time': round(self.max_ms, 2),
        }


_function_stats: Dict[str, FunctionStats] = {}
_stats_lock = threading.Lock()


def _record_call(func_name: str, elapsed_ms: float) -> None:
    with _stats_lock:
        _function_stats.setdefault(func_name, FunctionStats()).add(elapsed_ms)

    level = _severity(elapsed_ms)
    if level:
        critical = level == 'CRITICAL'
        _append(SLOW_FUNCTIONS_LOG_NAME, _block(
            f"{'🔴' if critical else '⚠️'} [{'CRÍTICO' if critical else 'LENTO'}] {_now_text()}",
            [('Función', func_name), ('Tiempo', f"{elapsed_ms:.0f} ms")],
            closing=True,
        ))


def profile_function(func: Optional[Callable] = None, name: Optional[str] = None):
    """
    Decorador que mide una función de servicio.

    Se usa con o sin argumentos:

        @profile_function
        def preview(...): ...

        @profile_function(name='Checkout')
        def checkout(...): ...

    El estado de ENABLE_PROFILING se consulta en cada llamada, no al decorar.
    """
    def decorator(fn):
        label = name or fn.__name__

        @wraps(fn)
        def wrapper(*args, **kwargs):
            if not is_enabled():
                return fn(*args, **kwargs)
            started = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                _record_call(label, (time.perf_counter() - started) * 1000)

        return wrapper

    if func is not None:
        return decorator(func)
    return decorator


def get_function_stats() -> Dict[str, Dict[str, float]]:
    """{nombre: {calls, avg_time, max_time}} de las funciones decoradas."""
    with _stats_lock:
        return {label: stats.summary() for label, stats in _function_stats.items()}


def reset_stats() -> None:
    with _stats_lock:
        _function_stats.clear()
