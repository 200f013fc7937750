# ==============================================================================
# RUTAS DE ADMINISTRACIÓN
# ==============================================================================
# /api/admin/allowlist      → doble control: X-Admin-Password + email admin
# /api/admin/orders/<id>    → borrar pedido (rol admin en la allowlist)
# ==============================================================================

import logging

from flask import Blueprint, request

from orderflow.app_container import get_container
from orderflow.routes.helpers import current_token, json_body, respond
from orderflow.services.access_service import AccessError


logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')


def _allowlist_gate():
    """None si pasa el control; si no, (body, status)."""
    try:
        email = get_container().access_service.assert_allowlist_admin(
            request.headers.get('X-Admin-Password'), current_token()
        )
    except AccessError as e:
        return e.payload, e.status
    logger.debug("Allowlist admin: %s %s", email, request.method)
    return None


# ═══════════════════════════════════════════════════════════════════════════════
# ALLOWLIST
# ═══════════════════════════════════════════════════════════════════════════════

@admin_bp.route('/allowlist', methods=['GET'])
def allowlist_list():
    denied = _allowlist_gate()
    if denied:
        return denied
    return respond(get_container().access_service.list_allowlist())


@admin_bp.route('/allowlist', methods=['POST'])
def allowlist_add():
    denied = _allowlist_gate()
    if denied:
        return denied
    return respond(get_container().access_service.add_to_allowlist(json_body()))


@admin_bp.route('/allowlist', methods=['PATCH'])
def allowlist_update():
    denied = _allowlist_gate()
    if denied:
        return denied
    return respond(get_container().access_service.update_allowlist(json_body()))


@admin_bp.route('/allowlist', methods=['DELETE'])
def allowlist_remove():
    denied = _allowlist_gate()
    if denied:
        return denied
    return respond(get_container().access_service.remove_from_allowlist(request.args.get('email')))


# ═══════════════════════════════════════════════════════════════════════════════
# PEDIDOS
# ═══════════════════════════════════════════════════════════════════════════════

@admin_bp.route('/orders/<order_id>', methods=['DELETE'])
def delete_order(order_id):
    """
    Borra un pedido con sus líneas, mensajes y auditoría.

    401 sin token o token inválido, 403 'Not allowed' fuera de la
    allowlist, 403 'Admin only' si el rol no es admin.
    """
    container = get_container()
    try:
        member = container.access_service.authenticate(current_token())
    except AccessError as e:
        if e.status == 403:
            return {'ok': False, 'error': 'Not allowed'}, 403
        return e.payload, e.status
    if not member.is_admin():
        return {'ok': False, 'error': 'Admin only'}, 403

    result = container.order_service.delete_order((order_id or '').strip())
    if result.get('ok'):
        logger.info("Pedido %s eliminado por %s", order_id, member.email)
    return respond(result)
