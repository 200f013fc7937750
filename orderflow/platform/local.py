# ==============================================================================
# PLATAFORMA LOCAL - Tablas JSON + archivos en disco
# ==============================================================================
# Implementación de la plataforma para desarrollo y tests:
#
#   - Cada tabla es un archivo JSON (lista de filas) en data_dir
#   - Los objetos de storage viven en file_storage_root/<bucket>/<path>
#   - Los tokens de sesión y los enlaces firmados usan itsdangerous
#     (la misma librería con la que Flask firma las sesiones)
#
# La escritura es atómica (archivo temporal + os.replace) y protegida por un
# lock global.
# ==============================================================================

import json
import logging
import mimetypes
import os
import re
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from .errors import AuthError, PlatformError
from .interfaces import FILTER_OPERATORS, Filter, Ordering


logger = logging.getLogger(__name__)


def utc_now_iso() -> str:
    """Timestamp ISO-8601 en UTC (formato de la plataforma)."""
    return datetime.now(timezone.utc).isoformat()


# ==============================================================================
# FILTROS Y ORDEN (evaluación en memoria)
# ==============================================================================

def _like_to_regex(pattern: str) -> "re.Pattern":
    """Convierte un patrón SQL LIKE (% y _) a regex case-insensitive."""
    parts = []
    for ch in str(pattern):
        if ch == '%':
            parts.append('.*')
        elif ch == '_':
            parts.append('.')
        else:
            parts.append(re.escape(ch))
    return re.compile('^' + ''.join(parts) + '$', re.IGNORECASE | re.DOTALL)


def _compare(left: Any, right: Any, op: str) -> bool:
    if left is None or right is None:
        return False
    try:
        if isinstance(right, (int, float)) and not isinstance(right, bool):
            left = float(left)
        else:
            left, right = str(left), str(right)
    except (TypeError, ValueError):
        return False
    if op == 'gt':
        return left > right
    if op == 'gte':
        return left >= right
    if op == 'lt':
        return left < right
    return left <= right


def row_matches(row: Dict[str, Any], filters: Sequence[Filter]) -> bool:
    """
    Evalúa una lista de filtros (AND) sobre una fila.

    Args:
        row: Fila de la tabla
        filters: Lista de tuplas (columna, operador, valor)

    Returns:
        True si la fila cumple todos los filtros
    """
    for column, op, value in filters:
        if op not in FILTER_OPERATORS:
            raise PlatformError(f"Operador de filtro no soportado: {op}", 400)

        if op == 'or_ilike':
            regex = _like_to_regex(value)
            if not any(regex.match(str(row.get(c) or '')) for c in column):
                return False
            continue

        current = row.get(column)
        if op == 'eq':
            if current != value and str(current) != str(value):
                return False
        elif op == 'neq':
            if current == value or str(current) == str(value):
                return False
        elif op == 'is':
            if current is not value:
                return False
        elif op == 'in':
            values = [str(v) for v in (value or [])]
            if str(current) not in values:
                return False
        elif op == 'ilike':
            if current is None or not _like_to_regex(value).match(str(current)):
                return False
        elif not _compare(current, value, op):
            return False
    return True


def sort_rows(rows: List[Dict[str, Any]], order: Sequence[Ordering]) -> List[Dict[str, Any]]:
    """Ordena filas por varias columnas (nulos al final, como la plataforma)."""
    result = list(rows)
    for column, ascending in reversed(list(order)):
        present = [r for r in result if r.get(column) is not None]
        missing = [r for r in result if r.get(column) is None]
        present.sort(key=lambda r: r.get(column), reverse=not ascending)
        result = present + missing
    return result


def project(row: Dict[str, Any], columns: str) -> Dict[str, Any]:
    """Aplica la lista de columnas de un select ("*" o "id, name")."""
    if not columns or columns.strip() == '*':
        return dict(row)
    wanted = [c.strip() for c in columns.split(',') if c.strip()]
    return {c: row.get(c) for c in wanted}


# ==============================================================================
# TABLA JSON
# ==============================================================================

class LocalTable:
    """
    Tabla almacenada como lista JSON.

    Formato del archivo <data_dir>/<tabla>.json:
    [
        {"id": "3f2a...", "created_at": "2024-01-01T10:00:00+00:00", ...},
        ...
    ]
    """

    # Lock global para evitar escrituras concurrentes a archivos
    _file_lock = threading.RLock()

    def __init__(self, name: str, data_dir: str):
        self.name = name
        self.file_path = os.path.join(data_dir, f"{name}.json")
        self._ensure_file_exists()

    def _ensure_file_exists(self) -> None:
        if not os.path.exists(self.file_path):
            os.makedirs(os.path.dirname(self.file_path), exist_ok=True)
            self._write_raw([])

    def _read_raw(self) -> List[Dict[str, Any]]:
        with self._file_lock:
            try:
                with open(self.file_path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
            except (json.JSONDecodeError, FileNotFoundError):
                return []
        return data if isinstance(data, list) else []

    def _write_raw(self, data: List[Dict[str, Any]]) -> None:
        with self._file_lock:
            temp_path = self.file_path + '.tmp'
            try:
                with open(temp_path, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(temp_path, self.file_path)
            except Exception:
                if os.path.exists(temp_path):
                    os.remove(temp_path)
                raise

    @staticmethod
    def _new_row(row: Dict[str, Any]) -> Dict[str, Any]:
        stored = dict(row)
        stored.setdefault('id', uuid.uuid4().hex)
        stored.setdefault('created_at', utc_now_iso())
        return stored

    def select(
        self,
        columns: str = "*",
        filters: Sequence[Filter] = (),
        order: Sequence[Ordering] = (),
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        rows = [r for r in self._read_raw() if row_matches(r, filters)]
        rows = sort_rows(rows, order)
        if limit is not None:
            rows = rows[:limit]
        return [project(r, columns) for r in rows]

    def insert(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        with self._file_lock:
            data = self._read_raw()
            stored = [self._new_row(r) for r in rows]
            data.extend(stored)
            self._write_raw(data)
        return [dict(r) for r in stored]

    def upsert(self, rows: List[Dict[str, Any]], on_conflict: Sequence[str]) -> List[Dict[str, Any]]:
        keys = list(on_conflict)
        if not keys:
            raise PlatformError("upsert requiere columnas on_conflict", 400)

        def key_of(row: Dict[str, Any]) -> tuple:
            return tuple(str(row.get(k)) for k in keys)

        affected = []
        with self._file_lock:
            data = self._read_raw()
            index = {key_of(r): r for r in data}
            seen = set()
            for row in rows:
                k = key_of(row)
                if k in seen:
                    # Igual que la plataforma: la misma clave dos veces en un upsert falla
                    raise PlatformError(
                        "ON CONFLICT DO UPDATE command cannot affect row a second time",
                        409,
                    )
                seen.add(k)
                existing = index.get(k)
                if existing is not None:
                    existing.update({c: v for c, v in row.items() if c != 'id'})
                    affected.append(dict(existing))
                else:
                    stored = self._new_row(row)
                    data.append(stored)
                    index[k] = stored
                    affected.append(dict(stored))
            self._write_raw(data)
        return affected

    def update(self, patch: Dict[str, Any], filters: Sequence[Filter]) -> List[Dict[str, Any]]:
        updated = []
        with self._file_lock:
            data = self._read_raw()
            for row in data:
                if row_matches(row, filters):
                    row.update(patch)
                    updated.append(dict(row))
            if updated:
                self._write_raw(data)
        return updated

    def delete(self, filters: Sequence[Filter]) -> List[Dict[str, Any]]:
        with self._file_lock:
            data = self._read_raw()
            keep, removed = [], []
            for row in data:
                (removed if row_matches(row, filters) else keep).append(row)
            if removed:
                self._write_raw(keep)
        return removed


# ==============================================================================
# AUTENTICACIÓN LOCAL (tokens firmados)
# ==============================================================================

class LocalAuth:
    """
    Autenticación local con tokens firmados.

    No hay proveedor OAuth: los códigos de login se emiten con
    issue_login_code() (comando `flask orderflow login-link`).
    """

    TOKEN_MAX_AGE = 60 * 60 * 24      # 24 horas
    LOGIN_CODE_MAX_AGE = 60 * 10      # 10 minutos

    def __init__(self, secret_key: str):
        self._tokens = URLSafeTimedSerializer(secret_key, salt='orderflow-access')
        self._codes = URLSafeTimedSerializer(secret_key, salt='orderflow-login')

    @staticmethod
    def user_id_for(email: str) -> str:
        """ID estable por email (mismo usuario en cada login)."""
        return uuid.uuid5(uuid.NAMESPACE_URL, f"mailto:{email.strip().lower()}").hex

    def issue_token(self, email: str, user_id: str = None) -> str:
        email = email.strip().lower()
        return self._tokens.dumps({'sub': user_id or self.user_id_for(email), 'email': email})

    def issue_login_code(self, email: str) -> str:
        return self._codes.dumps({'email': email.strip().lower()})

    def get_user(self, token: str) -> Dict[str, Any]:
        try:
            data = self._tokens.loads(token, max_age=self.TOKEN_MAX_AGE)
        except SignatureExpired as e:
            raise AuthError("Session expired", 401) from e
        except BadSignature as e:
            raise AuthError("Invalid session", 401) from e
        return {'id': data.get('sub'), 'email': data.get('email')}

    def authorize_url(self, provider: str, redirect_to: str, code_challenge: str) -> str:
        raise AuthError(
            "OAuth no disponible en la plataforma local. Usa `flask orderflow login-link`.",
            400,
        )

    def exchange_code_for_session(self, code: str, code_verifier: str) -> Dict[str, Any]:
        try:
            data = self._codes.loads(code, max_age=self.LOGIN_CODE_MAX_AGE)
        except (BadSignature, SignatureExpired) as e:
            raise AuthError("Invalid or expired login code", 400) from e
        email = data.get('email') or ''
        user = {'id': self.user_id_for(email), 'email': email}
        return {
            'access_token': self.issue_token(email, user['id']),
            'refresh_token': None,
            'user': user,
        }


# ==============================================================================
# STORAGE LOCAL (carpeta en disco)
# ==============================================================================

class LocalStorage:
    """
    Storage en disco: <root>/<bucket>/<path>.

    Los enlaces firmados apuntan a /api/local-file/<bucket>/<path>?token=...
    """

    MAX_SIGNED_AGE = 60 * 60

    def __init__(self, root: str, secret_key: str, url_prefix: str = '/api/local-file'):
        self.root = root
        self.url_prefix = url_prefix.rstrip('/')
        self._signer = URLSafeTimedSerializer(secret_key, salt='orderflow-file')
        os.makedirs(self.root, exist_ok=True)

    def resolve(self, relative_path: str) -> str:
        """
        Resuelve un path relativo dentro de root.

        Raises:
            PlatformError: Si el path sale de root (path traversal)
        """
        cleaned = str(relative_path or '').replace('\\', '/').lstrip('/')
        if not cleaned:
            raise PlatformError("Invalid path", 400)
        root = os.path.realpath(self.root)
        full = os.path.realpath(os.path.join(root, cleaned))
        root_with_sep = root if root.endswith(os.sep) else root + os.sep
        if not full.lower().startswith(root_with_sep.lower()):
            raise PlatformError("Invalid path", 400)
        return full

    def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: Optional[str] = None,
        upsert: bool = False,
    ) -> str:
        full = self.resolve(f"{bucket}/{path}")
        if os.path.exists(full) and not upsert:
            raise PlatformError("The resource already exists", 409)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        with open(full, 'wb') as f:
            f.write(data)
        logger.debug("storage local: %s/%s (%d bytes)", bucket, path, len(data))
        return path

    def remove(self, bucket: str, paths: List[str]) -> List[str]:
        removed = []
        for p in paths:
            full = self.resolve(f"{bucket}/{p}")
            if os.path.exists(full):
                os.remove(full)
                removed.append(p)
        return removed

    def create_signed_url(self, bucket: str, path: str, expires_in: int, download: bool = False) -> str:
        full = self.resolve(f"{bucket}/{path}")
        if not os.path.exists(full):
            raise PlatformError("Object not found", 404, {'bucket': bucket, 'path': path})
        token = self._signer.dumps({'b': bucket, 'p': path, 'exp': int(expires_in)})
        quoted = '/'.join(quote(part) for part in f"{bucket}/{path}".split('/') if part)
        url = f"{self.url_prefix}/{quoted}?token={token}"
        if download:
            url += "&download=1"
        return url

    def verify_signed_path(self, token: str, relative_path: str) -> bool:
        """True si el token firma exactamente este <bucket>/<path> y no expiró."""
        try:
            data, signed_at = self._signer.loads(
                token, max_age=self.MAX_SIGNED_AGE, return_timestamp=True
            )
        except (BadSignature, SignatureExpired):
            return False
        age = (datetime.now(timezone.utc) - signed_at).total_seconds()
        if age > int(data.get('exp', 0)):
            return False
        expected = f"{data.get('b')}/{data.get('p')}".strip('/')
        return expected == str(relative_path or '').replace('\\', '/').strip('/')

    @staticmethod
    def guess_mime(full_path: str) -> str:
        mime, _ = mimetypes.guess_type(full_path)
        if mime and mime.startswith('text/'):
            return f"{mime}; charset=utf-8"
        if mime == 'application/json':
            return 'application/json; charset=utf-8'
        return mime or 'application/octet-stream'


# ==============================================================================
# PLATAFORMA LOCAL
# ==============================================================================

class LocalPlatform:
    """Plataforma completa en disco (tablas JSON + storage + auth firmada)."""

    def __init__(self, data_dir: str, file_storage_root: str, secret_key: str):
        self.data_dir = data_dir
        os.makedirs(self.data_dir, exist_ok=True)
        self.auth = LocalAuth(secret_key)
        self.storage = LocalStorage(file_storage_root, secret_key)
        self._tables: Dict[str, LocalTable] = {}
        self._lock = threading.RLock()

    def table(self, name: str) -> LocalTable:
        with self._lock:
            if name not in self._tables:
                self._tables[name] = LocalTable(name, self.data_dir)
            return self._tables[name]

    # Atajos para CLI y tests
    def issue_token(self, email: str, user_id: str = None) -> str:
        return self.auth.issue_token(email, user_id)

    def issue_login_code(self, email: str) -> str:
        return self.auth.issue_login_code(email)
