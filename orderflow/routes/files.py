# ==============================================================================
# RUTAS DE ARCHIVOS
# ==============================================================================
# GET /api/files/signed-url?bucket=&path=&expires=&download=1
#     → enlace firmado para product-images / product-files
# GET /api/local-file/<bucket>/<path>?token=...
#     → descarga de archivos de la plataforma local
# ==============================================================================

import logging
import os
from urllib.parse import quote

from flask import Blueprint, Response, request

from orderflow.app_container import get_container
from orderflow.platform import LocalPlatform, PlatformError
from orderflow.routes.helpers import current_token, member_required, query_flag, respond
from orderflow.services.access_service import AccessError
from orderflow.services.file_service import SIGNABLE_BUCKETS


logger = logging.getLogger(__name__)

files_bp = Blueprint('files', __name__, url_prefix='/api')


@files_bp.route('/files/signed-url', methods=['GET'])
@member_required()
def signed_url():
    result = get_container().file_service.signed_url_for_client(
        request.args.get('bucket'),
        request.args.get('path'),
        request.args.get('expires'),
        download=query_flag('download'),
    )
    return respond(result)


def _text(message, status):
    return Response(message, status=status, content_type='text/plain; charset=utf-8')


@files_bp.route('/local-file/<path:relative_path>', methods=['GET'])
def local_file(relative_path):
    """
    Sirve un archivo de FILE_STORAGE_ROOT.

    Acceso con un token firmado válido para ese path. Sin token, un miembro
    de la allowlist solo puede leer product-images y product-files; las
    confirmaciones de pedido exigen siempre enlace firmado.
    Imágenes y PDF inline, el resto como adjunto.
    """
    container = get_container()
    platform = container.platform
    if not isinstance(platform, LocalPlatform):
        return _text("Not found", 404)

    storage = platform.storage
    token = request.args.get('token')
    if not (token and storage.verify_signed_path(token, relative_path)):
        bucket = relative_path.replace('\\', '/').lstrip('/').split('/', 1)[0]
        if bucket not in SIGNABLE_BUCKETS:
            return {'ok': False, 'error': 'Signed link required'}, 401
        try:
            container.access_service.authenticate(current_token())
        except AccessError as e:
            return e.payload, e.status

    if not relative_path:
        return _text("Bad request", 400)
    try:
        full = storage.resolve(relative_path)
    except PlatformError as e:
        logger.warning("[local-file] path rechazado %r: %s", relative_path, e.message)
        return _text("Bad request", 400)

    if not os.path.isfile(full):
        return _text("Not found", 404)

    mime = storage.guess_mime(full)
    with open(full, 'rb') as f:
        data = f.read()

    inline = (mime.startswith('image/') or mime == 'application/pdf') and not query_flag('download')
    disposition = 'inline' if inline else 'attachment'
    filename = quote(os.path.basename(full))

    response = Response(data, status=200, content_type=mime)
    response.headers['Content-Length'] = str(len(data))
    response.headers['Cache-Control'] = 'private, max-age=60'
    response.headers['Content-Disposition'] = f'{disposition}; filename="{filename}"'
    response.headers['Vary'] = 'Authorization, Cookie'
    return response
