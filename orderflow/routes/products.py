# ==============================================================================
# RUTAS DE CATÁLOGO
# ==============================================================================
# Lectura: cualquier miembro de la allowlist.
# Escritura (CRUD, medios, relaciones): solo admin.
# ==============================================================================

from flask import Blueprint, request

from orderflow.app_container import get_container
from orderflow.models import Role
from orderflow.routes.helpers import (
    current_member,
    json_body,
    member_required,
    query_flag,
    respond,
    uploaded_files,
)


products_bp = Blueprint('products', __name__, url_prefix='/api/products')


def _catalog():
    return get_container().catalog_service


# ═══════════════════════════════════════════════════════════════════════════════
# CONSULTAS
# ═══════════════════════════════════════════════════════════════════════════════

@products_bp.route('', methods=['GET'])
@member_required()
def list_products():
    """
    Lista de productos.

    ?q=texto filtra por product_no o nombre; ?all=1 (solo admin) incluye
    los inactivos, más nuevos primero.
    """
    include_inactive = query_flag('all') and current_member().is_admin()
    result = _catalog().list_products(
        search=request.args.get('q'),
        include_inactive=include_inactive,
    )
    return respond(result)


@products_bp.route('/<product_id>', methods=['GET'])
@member_required()
def product_detail(product_id):
    return respond(_catalog().get_product_detail(product_id, current_member()))


# ═══════════════════════════════════════════════════════════════════════════════
# ADMINISTRACIÓN
# ═══════════════════════════════════════════════════════════════════════════════

@products_bp.route('', methods=['POST'])
@member_required(Role.ADMIN)
def create_product():
    return respond(_catalog().create_product(json_body()), ok_status=201)


@products_bp.route('/<product_id>', methods=['PATCH'])
@member_required(Role.ADMIN)
def update_product(product_id):
    return respond(_catalog().update_product(product_id, json_body()))


@products_bp.route('/<product_id>', methods=['DELETE'])
@member_required(Role.ADMIN)
def delete_product(product_id):
    return respond(_catalog().delete_product(product_id))


# Miniatura
@products_bp.route('/<product_id>/thumbnail', methods=['POST'])
@member_required(Role.ADMIN)
def upload_thumbnail(product_id):
    uploads = uploaded_files('file')
    if not uploads:
        return {'ok': False, 'error': 'Velg et bilde først.'}, 400
    upload = uploads[0]
    return respond(_catalog().set_thumbnail(
        product_id, upload['file_name'], upload['data'], upload['content_type']
    ))


@products_bp.route('/<product_id>/thumbnail', methods=['DELETE'])
@member_required(Role.ADMIN)
def delete_thumbnail(product_id):
    return respond(_catalog().delete_thumbnail(product_id))


# Galería
@products_bp.route('/<product_id>/images', methods=['POST'])
@member_required(Role.ADMIN)
def upload_images(product_id):
    return respond(_catalog().add_gallery_images(product_id, uploaded_files('files')), ok_status=201)


@products_bp.route('/images/<image_id>', methods=['DELETE'])
@member_required(Role.ADMIN)
def delete_image(image_id):
    return respond(_catalog().delete_image(image_id))


# Documentos
@products_bp.route('/<product_id>/files', methods=['POST'])
@member_required(Role.ADMIN)
def upload_documents(product_id):
    return respond(_catalog().add_documents(product_id, uploaded_files('files')), ok_status=201)


@products_bp.route('/files/<file_id>', methods=['DELETE'])
@member_required(Role.ADMIN)
def delete_document(file_id):
    return respond(_catalog().delete_document(file_id))


# Relaciones
@products_bp.route('/<product_id>/relations', methods=['POST'])
@member_required(Role.ADMIN)
def add_relation(product_id):
    data = json_body()
    return respond(_catalog().add_relation(
        product_id, data.get('related_product_id'), data.get('relation_type')
    ), ok_status=201)


@products_bp.route('/relations/<relation_id>', methods=['DELETE'])
@member_required(Role.ADMIN)
def remove_relation(relation_id):
    return respond(_catalog().remove_relation(relation_id))
