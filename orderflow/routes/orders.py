# ==============================================================================
# RUTAS DE PEDIDOS
# ==============================================================================
# Cliente (kunde): sus propios pedidos, checkout, chat.
# innkjøper/admin: todos los pedidos y su auditoría.
# ==============================================================================

from flask import Blueprint, request

from orderflow.app_container import get_container
from orderflow.models import Role
from orderflow.routes.helpers import current_member, json_body, member_required, respond


orders_bp = Blueprint('orders', __name__, url_prefix='/api/orders')


@orders_bp.route('', methods=['GET'])
@member_required()
def list_orders():
    orders = get_container().order_service.list_orders(current_member())
    return {'ok': True, 'orders': orders}, 200


@orders_bp.route('', methods=['POST'])
@member_required()
def checkout():
    """
    Crea un pedido con el carrito de la sesión.
    Espera JSON con: project_name, contact_name, delivery_address y los
    campos opcionales (project_no, contact_phone, contact_email,
    delivery_postcode, delivery_city, comment).
    """
    result = get_container().order_service.checkout(current_member(), json_body())
    return respond(result, ok_status=201)


@orders_bp.route('/<order_id>', methods=['GET'])
@member_required()
def order_detail(order_id):
    return respond(get_container().order_service.get_order(current_member(), order_id))


@orders_bp.route('/<order_id>/confirmation-url', methods=['GET'])
@member_required()
def confirmation_url(order_id):
    """Enlace firmado (10 min) al documento de confirmación."""
    return respond(get_container().order_service.confirmation_url(current_member(), order_id))


# ═══════════════════════════════════════════════════════════════════════════════
# CHAT
# ═══════════════════════════════════════════════════════════════════════════════

@orders_bp.route('/<order_id>/messages', methods=['GET'])
@member_required()
def list_messages(order_id):
    """Mensajes del pedido; ?after=<ISO> para traer solo los nuevos."""
    result = get_container().chat_service.list_messages(
        current_member(), order_id, request.args.get('after')
    )
    return respond(result)


@orders_bp.route('/<order_id>/messages', methods=['POST'])
@member_required()
def post_message(order_id):
    result = get_container().chat_service.post_message(
        current_member(), order_id, json_body().get('body')
    )
    return respond(result, ok_status=201)


# ═══════════════════════════════════════════════════════════════════════════════
# AUDITORÍA
# ═══════════════════════════════════════════════════════════════════════════════

@orders_bp.route('/<order_id>/audit', methods=['GET'])
@member_required(Role.INNKJOPER)
def order_audit(order_id):
    container = get_container()
    if not container.order_repo.get_by_id(order_id):
        return {'ok': False, 'error': 'Ordre ikke funnet'}, 404
    return {'ok': True, 'entries': container.audit_service.list_for_order(order_id)}, 200
