# ==============================================================================
# HELPERS DE RUTAS - Autenticación y respuestas JSON
# ==============================================================================
# - current_token(): bearer del header o, si falta, token de la sesión
# - member_required(*roles): resuelve el miembro y lo deja en g.member
# - respond(result): dict de servicio → (body, status)
# ==============================================================================

from functools import wraps
from typing import Any, Dict, Optional, Tuple

from flask import g, request, session

from orderflow.app_container import get_container
from orderflow.models import Member
from orderflow.services.access_service import AccessError, bearer_token


SESSION_TOKEN_KEY = 'access_token'


def current_token() -> Optional[str]:
    """Token del header Authorization; si no hay, el de la sesión (login OAuth)."""
    return bearer_token(request.headers.get('Authorization')) or session.get(SESSION_TOKEN_KEY)


def current_member() -> Member:
    return g.member


def member_required(*roles):
    """
    Exige un miembro de la allowlist (y opcionalmente un rol).

    Las rutas decoradas siempre responden JSON; los errores de acceso
    devuelven el cuerpo y el código de AccessError.

    Uso:
        @member_required()
        @member_required(Role.INNKJOPER)
    """
    def deco(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            access = get_container().access_service
            try:
                member = access.authenticate(current_token())
                if roles:
                    access.require_role(member, *roles)
            except AccessError as e:
                return e.payload, e.status
            g.member = member
            return f(*args, **kwargs)
        return wrapper
    return deco


def respond(result: Dict[str, Any], ok_status: int = 200) -> Tuple[Dict[str, Any], int]:
    """
    Convierte el resultado de un servicio en respuesta Flask.

    La clave 'status' (código HTTP) se quita del cuerpo.
    """
    body = dict(result)
    status = body.pop('status', None)
    if status is None:
        status = ok_status if body.get('ok', True) else 400
    return body, status


def json_body() -> Dict[str, Any]:
    """Cuerpo JSON de la petición (dict vacío si no es JSON válido)."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def query_flag(name: str) -> bool:
    return (request.args.get(name) or '').strip().lower() in ('1', 'true', 'yes')


def uploaded_files(field: str = 'files'):
    """
    Archivos subidos por multipart como [{'file_name', 'data', 'content_type'}].

    Acepta el campo dado y también 'file'.
    """
    uploads = []
    names = [field] if field == 'file' else [field, 'file']
    for storage in [s for name in names for s in request.files.getlist(name)]:
        if not storage or not storage.filename:
            continue
        uploads.append({
            'file_name': storage.filename,
            'data': storage.read(),
            'content_type': storage.mimetype or None,
        })
    return uploads
