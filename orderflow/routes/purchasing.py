# ==============================================================================
# RUTAS DE COMPRAS (innkjøper y admin)
# ==============================================================================
# GET   /api/purchasing/orders                      → panel con filtros
# PATCH /api/purchasing/orders/<id>                 → estado, ETA, notas
# POST  /api/purchasing/orders/<id>/confirmation    → subir confirmación
# ==============================================================================

from flask import Blueprint, request

from orderflow.app_container import get_container
from orderflow.models import Role
from orderflow.routes.helpers import current_member, json_body, member_required, respond, uploaded_files


purchasing_bp = Blueprint('purchasing', __name__, url_prefix='/api/purchasing')


@purchasing_bp.route('/orders', methods=['GET'])
@member_required(Role.INNKJOPER)
def overview():
    """
    Pedidos con total.

    Query: q, status (ALL | estado), date_from, date_to,
    sort (NEWEST | OLDEST | TOTAL_DESC | TOTAL_ASC)
    """
    filters = {
        key: request.args.get(key)
        for key in ('q', 'status', 'date_from', 'date_to', 'sort')
    }
    return respond(get_container().order_service.purchasing_overview(filters))


@purchasing_bp.route('/orders/<order_id>', methods=['PATCH'])
@member_required(Role.INNKJOPER)
def update_order(order_id):
    return respond(get_container().order_service.update_order(current_member(), order_id, json_body()))


@purchasing_bp.route('/orders/<order_id>/confirmation', methods=['POST'])
@member_required(Role.INNKJOPER)
def upload_confirmation(order_id):
    uploads = uploaded_files('file')
    if not uploads:
        return {'ok': False, 'error': 'Velg en fil først.'}, 400
    upload = uploads[0]
    result = get_container().order_service.upload_confirmation(
        current_member(), order_id, upload['file_name'], upload['data'], upload['content_type']
    )
    return respond(result)
