# ==============================================================================
# RUTA DE IMPORTACIÓN MASIVA (solo admin)
# ==============================================================================
# POST /api/products/import
#   multipart: file=<.xlsx|.csv>
#   JSON:      {"rows": [...]}
#   ?mode=preview → valida sin escribir; por defecto importa
# ==============================================================================

import logging

from flask import Blueprint, request

from orderflow.app_container import get_container
from orderflow.models import Role
from orderflow.routes.helpers import json_body, member_required, respond, uploaded_files
from orderflow.services.import_service import ImportFileError, parse_file


logger = logging.getLogger(__name__)

import_bp = Blueprint('product_import', __name__, url_prefix='/api/products')


@import_bp.route('/import', methods=['POST'])
@member_required(Role.ADMIN)
def import_products():
    service = get_container().import_service
    mode = (request.args.get('mode') or request.form.get('mode') or '').strip().lower()

    uploads = uploaded_files('file')
    if uploads:
        try:
            rows = parse_file(uploads[0]['file_name'], uploads[0]['data'])
        except ImportFileError as e:
            return {'ok': False, 'error': str(e)}, 400
    else:
        data = json_body()
        if not data:
            return {'ok': False, 'error': 'Ugyldig JSON body.'}, 400
        rows = data.get('rows') if isinstance(data.get('rows'), list) else []
        mode = mode or str(data.get('mode') or '').strip().lower()
        rows = [r for r in rows if isinstance(r, dict)]

    if mode == 'preview':
        return respond(service.preview(rows))
    return respond(service.run_import(rows))
