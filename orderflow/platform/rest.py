# ==============================================================================
# PLATAFORMA REST - Cliente HTTP de la plataforma externa
# ==============================================================================
# Habla con los tres servicios de la plataforma:
#
#   /auth/v1/...     → verificación de tokens, OAuth con PKCE
#   /rest/v1/<tabla> → consultas a tablas (filtros en query string)
#   /storage/v1/...  → subida, borrado y enlaces firmados
#
# Las llamadas privilegiadas usan la clave de servicio; la verificación de
# tokens usa la clave pública. Todas las fallas se convierten en PlatformError.
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote, urlencode

import requests

from .errors import AuthError, PlatformError
from .interfaces import FILTER_OPERATORS, Filter, Ordering


logger = logging.getLogger(__name__)

HTTP_OK = 200
HTTP_MULTIPLE_CHOICES = 300
HTTP_UNAUTHORIZED = 401


def _quote_value(value: Any) -> str:
    """Formatea un valor para la sintaxis de filtros de la API REST."""
    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'true' if value else 'false'
    text = str(value)
    if any(ch in text for ch in ',()"'):
        return '"' + text.replace('"', '\\"') + '"'
    return text


def build_filter_params(filters: Sequence[Filter]) -> List[tuple]:
    """
    Convierte filtros (columna, op, valor) a parámetros de query.

    Ejemplos:
        ('email', 'eq', 'a@b.no')            → ('email', 'eq.a@b.no')
        ('product_no', 'in', ['A', 'B'])     → ('product_no', 'in.(A,B)')
        (('product_no', 'name'), 'or_ilike', '%x%')
                                             → ('or', '(product_no.ilike.%x%,name.ilike.%x%)')
    """
    params = []
    for column, op, value in filters:
        if op not in FILTER_OPERATORS:
            raise PlatformError(f"Operador de filtro no soportado: {op}", 400)
        if op == 'or_ilike':
            inner = ','.join(f"{c}.ilike.{_quote_value(value)}" for c in column)
            params.append(('or', f"({inner})"))
        elif op == 'in':
            inner = ','.join(_quote_value(v) for v in (value or []))
            params.append((column, f"in.({inner})"))
        else:
            params.append((column, f"{op}.{_quote_value(value)}"))
    return params


def build_order_param(order: Sequence[Ordering]) -> Optional[str]:
    if not order:
        return None
    return ','.join(f"{col}.{'asc' if asc else 'desc'}" for col, asc in order)


class RestClient:
    """Base HTTP: URL, headers y manejo de errores comunes."""

    def __init__(self, base_url: str, api_key: str, bearer: str, timeout: int = 10,
                 session: requests.Session = None):
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.bearer = bearer
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self, extra: Dict[str, str] = None, bearer: str = None) -> Dict[str, str]:
        headers = {
            'apikey': self.api_key,
            'Authorization': f"Bearer {bearer or self.bearer}",
            'Accept': 'application/json',
        }
        if extra:
            headers.update(extra)
        return headers

    def request(
        self,
        method: str,
        path: str,
        params: Any = None,
        json_body: Any = None,
        data: bytes = None,
        headers: Dict[str, str] = None,
        bearer: str = None,
    ) -> requests.Response:
        """
        Ejecuta una petición y devuelve la respuesta si es 2xx.

        Raises:
            PlatformError: Conexión fallida, timeout o respuesta no 2xx
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=json_body,
                data=data,
                headers=self._headers(headers, bearer),
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            logger.error("Timeout hacia la plataforma: %s %s", method, url)
            raise PlatformError("Platform timeout", 504) from e
        except requests.exceptions.ConnectionError as e:
            logger.error("Plataforma no disponible: %s %s", method, url)
            raise PlatformError("Platform unavailable", 503) from e
        except requests.exceptions.RequestException as e:
            logger.error("Error de petición a la plataforma: %s", e)
            raise PlatformError(f"Request failed: {e!s}") from e

        logger.debug("%s %s -> %s", method, url, response.status_code)

        if HTTP_OK <= response.status_code < HTTP_MULTIPLE_CHOICES:
            return response

        try:
            error_data = response.json()
        except ValueError:
            error_data = {'message': response.text or 'Unknown error'}

        message = (
            error_data.get('message')
            or error_data.get('error_description')
            or error_data.get('msg')
            or error_data.get('error')
            or f"HTTP {response.status_code}"
        ) if isinstance(error_data, dict) else str(error_data)

        error_cls = AuthError if response.status_code == HTTP_UNAUTHORIZED else PlatformError
        raise error_cls(str(message), response.status_code, error_data)

    @staticmethod
    def json_or_empty(response: requests.Response) -> Any:
        if not response.content:
            return []
        try:
            return response.json()
        except ValueError:
            return []


# ==============================================================================
# TABLAS
# ==============================================================================

class RestTable:
    """Consultas a /rest/v1/<tabla>."""

    def __init__(self, client: RestClient, name: str):
        self.client = client
        self.name = name

    @property
    def _path(self) -> str:
        return f"rest/v1/{self.name}"

    def select(
        self,
        columns: str = "*",
        filters: Sequence[Filter] = (),
        order: Sequence[Ordering] = (),
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        params = [('select', columns.replace(' ', '') or '*')]
        params.extend(build_filter_params(filters))
        order_param = build_order_param(order)
        if order_param:
            params.append(('order', order_param))
        if limit is not None:
            params.append(('limit', str(limit)))
        response = self.client.request('GET', self._path, params=params)
        return self.client.json_or_empty(response)

    def insert(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        response = self.client.request(
            'POST', self._path, json_body=rows,
            headers={'Prefer': 'return=representation'},
        )
        return self.client.json_or_empty(response)

    def upsert(self, rows: List[Dict[str, Any]], on_conflict: Sequence[str]) -> List[Dict[str, Any]]:
        response = self.client.request(
            'POST', self._path,
            params=[('on_conflict', ','.join(on_conflict))],
            json_body=rows,
            headers={'Prefer': 'resolution=merge-duplicates,return=representation'},
        )
        return self.client.json_or_empty(response)

    def update(self, patch: Dict[str, Any], filters: Sequence[Filter]) -> List[Dict[str, Any]]:
        if not filters:
            raise PlatformError("update sin filtros no está permitido", 400)
        response = self.client.request(
            'PATCH', self._path,
            params=build_filter_params(filters),
            json_body=patch,
            headers={'Prefer': 'return=representation'},
        )
        return self.client.json_or_empty(response)

    def delete(self, filters: Sequence[Filter]) -> List[Dict[str, Any]]:
        if not filters:
            raise PlatformError("delete sin filtros no está permitido", 400)
        response = self.client.request(
            'DELETE', self._path,
            params=build_filter_params(filters),
            headers={'Prefer': 'return=representation'},
        )
        return self.client.json_or_empty(response)


# ==============================================================================
# AUTH
# ==============================================================================

class RestAuth:
    """Servicio /auth/v1 (usa la clave pública)."""

    def __init__(self, client: RestClient):
        self.client = client

    def get_user(self, token: str) -> Dict[str, Any]:
        if not token:
            raise AuthError("Missing bearer token", 401)
        try:
            response = self.client.request('GET', 'auth/v1/user', bearer=token)
        except AuthError:
            raise
        except PlatformError as e:
            if e.status_code and 400 <= e.status_code < 500:
                raise AuthError(e.message, e.status_code, e.details) from e
            raise
        data = response.json()
        return {'id': data.get('id'), 'email': data.get('email')}

    def authorize_url(self, provider: str, redirect_to: str, code_challenge: str) -> str:
        query = urlencode({
            'provider': provider,
            'redirect_to': redirect_to,
            'code_challenge': code_challenge,
            'code_challenge_method': 's256',
        })
        return f"{self.client.base_url}/auth/v1/authorize?{query}"

    def exchange_code_for_session(self, code: str, code_verifier: str) -> Dict[str, Any]:
        try:
            response = self.client.request(
                'POST', 'auth/v1/token',
                params=[('grant_type', 'pkce')],
                json_body={'auth_code': code, 'code_verifier': code_verifier},
            )
        except PlatformError as e:
            raise AuthError(e.message, e.status_code, e.details) from e
        data = response.json()
        user = data.get('user') or {}
        return {
            'access_token': data.get('access_token'),
            'refresh_token': data.get('refresh_token'),
            'user': {'id': user.get('id'), 'email': user.get('email')},
        }


# ==============================================================================
# STORAGE
# ==============================================================================

class RestStorage:
    """Servicio /storage/v1 (usa la clave de servicio)."""

    def __init__(self, client: RestClient):
        self.client = client

    @staticmethod
    def _object_path(bucket: str, path: str) -> str:
        return f"{quote(bucket)}/{quote(path.lstrip('/'))}"

    def create_signed_url(self, bucket: str, path: str, expires_in: int, download: bool = False) -> str:
        response = self.client.request(
            'POST', f"storage/v1/object/sign/{self._object_path(bucket, path)}",
            json_body={'expiresIn': int(expires_in)},
        )
        data = response.json()
        signed = data.get('signedURL') or data.get('signedUrl')
        if not signed:
            raise PlatformError("Could not sign", 500, data)
        url = f"{self.client.base_url}/storage/v1{signed}"
        if download:
            url += ('&' if '?' in url else '?') + 'download='
        return url

    def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: Optional[str] = None,
        upsert: bool = False,
    ) -> str:
        self.client.request(
            'POST', f"storage/v1/object/{self._object_path(bucket, path)}",
            data=data,
            headers={
                'Content-Type': content_type or 'application/octet-stream',
                'x-upsert': 'true' if upsert else 'false',
            },
        )
        return path

    def remove(self, bucket: str, paths: List[str]) -> List[str]:
        if not paths:
            return []
        response = self.client.request(
            'DELETE', f"storage/v1/object/{quote(bucket)}",
            json_body={'prefixes': list(paths)},
        )
        removed = self.client.json_or_empty(response)
        return [r.get('name') for r in removed if isinstance(r, dict)] or list(paths)


# ==============================================================================
# PLATAFORMA
# ==============================================================================

class RestPlatform:
    """
    Plataforma externa completa.

    Uso:
        platform = RestPlatform(url, anon_key, service_key)
        user = platform.auth.get_user(token)
        rows = platform.table('orders').select('id, status', [('id', 'eq', order_id)])
    """

    def __init__(self, base_url: str, anon_key: str, service_key: str, timeout: int = 10):
        if not base_url or not anon_key:
            raise PlatformError("Missing platform env: PLATFORM_URL / PLATFORM_ANON_KEY", 500)
        if not service_key:
            raise PlatformError("Missing env: PLATFORM_SERVICE_KEY", 500)
        session = requests.Session()
        self._anon = RestClient(base_url, anon_key, anon_key, timeout, session)
        self._service = RestClient(base_url, service_key, service_key, timeout, session)
        self.auth = RestAuth(self._anon)
        self.storage = RestStorage(self._service)

    def table(self, name: str) -> RestTable:
        return RestTable(self._service, name)
