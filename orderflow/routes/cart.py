# ==============================================================================
# RUTAS DE CARRITO
# ==============================================================================
# El carrito vive en la sesión Flask. Siempre retorna JSON.
# ==============================================================================

from flask import Blueprint

from orderflow.app_container import get_container
from orderflow.routes.helpers import current_member, json_body, member_required, respond


cart_bp = Blueprint('cart', __name__, url_prefix='/api/cart')


@cart_bp.route('', methods=['GET'])
@member_required()
def get_cart():
    return {'ok': True, **get_container().cart_service.get_cart()}, 200


@cart_bp.route('/items', methods=['POST'])
@member_required()
def add_item():
    """
    Agregar producto al carrito.
    Espera JSON con: product_id, qty (opcional, 1 por defecto)
    """
    data = json_body()
    product_id = str(data.get('product_id') or '').strip()
    if not product_id:
        return {'ok': False, 'error': 'Mangler product_id'}, 400

    container = get_container()
    product = container.catalog_service.get_product(product_id)
    if product and product.get('is_active') is False and not current_member().is_purchaser():
        product = None
    return respond(container.cart_service.add_item(product, data.get('qty', 1)))


@cart_bp.route('/items/<product_id>', methods=['PATCH'])
@member_required()
def set_qty(product_id):
    return respond(get_container().cart_service.set_qty(product_id, json_body().get('qty')))


@cart_bp.route('/items/<product_id>', methods=['DELETE'])
@member_required()
def remove_item(product_id):
    return respond(get_container().cart_service.remove_item(product_id))


@cart_bp.route('', methods=['DELETE'])
@member_required()
def clear_cart():
    cart_service = get_container().cart_service
    cart_service.clear()
    return {'ok': True, 'cart': cart_service.get_cart()}, 200
