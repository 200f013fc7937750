# ==============================================================================
# SERVICIO DE ACCESO
# ==============================================================================
# Centraliza la autenticación y los permisos:
#
# - Verificación del bearer token contra la plataforma
# - Allowlist de emails → rol (kunde, innkjøper, admin)
# - Administración de la allowlist (contraseña extra + email de admin)
#
# REGLA: el cliente nunca decide su rol. Cada ruta privilegiada vuelve a
# verificar el token y lee el rol de la allowlist con la clave de servicio.
# ==============================================================================

import logging
import re
from typing import Any, Dict, FrozenSet, Iterable, Optional

from orderflow.models import Member, Role
from orderflow.platform import AuthError, IAuth, PlatformError
from orderflow.repositories.interfaces import IAllowlistRepository


logger = logging.getLogger(__name__)

_BEARER_RE = re.compile(r'^\s*bearer\s+(\S.*?)\s*$', re.IGNORECASE)


class AccessError(Exception):
    """
    Excepción lanzada cuando una petición no pasa el control de acceso.

    Attributes:
        message: Mensaje para el cliente
        status: Código HTTP a devolver
        payload: Cuerpo JSON (por defecto {'ok': False, 'error': message})
    """

    def __init__(self, message: str, status: int = 401, payload: Dict[str, Any] = None):
        self.message = message
        self.status = status
        self.payload = payload or {'ok': False, 'error': message}
        super().__init__(message)


# ==============================================================================
# HELPERS
# ==============================================================================

def bearer_token(header: Optional[str]) -> Optional[str]:
    """Extrae el token de 'Authorization: Bearer <token>' (esquema sin mayúsculas)."""
    match = _BEARER_RE.match(header or '')
    return match.group(1) if match else None


def normalize_email(email: Any) -> str:
    return str(email if email is not None else '').strip().lower()


def is_valid_email(email: str) -> bool:
    """Chequeo simple (no RFC), suficiente para la allowlist."""
    return bool(email) and '@' in email and ' ' not in email


def parse_role(role: Any) -> Optional[Role]:
    """
    Rol estricto: None si el valor no es un rol conocido.

    Acepta 'innkjoper' y 'purchaser' como sinónimos de 'innkjøper'.
    """
    value = str(role if role is not None else '').strip().lower()
    if value == Role.ADMIN.value:
        return Role.ADMIN
    if value in (Role.INNKJOPER.value, 'innkjoper', 'purchaser'):
        return Role.INNKJOPER
    if value == Role.KUNDE.value:
        return Role.KUNDE
    return None


def normalize_role(role: Any) -> Role:
    """Rol tolerante: cualquier valor desconocido es 'kunde'."""
    return parse_role(role) or Role.KUNDE


def normalize_display_name(name: Any) -> Optional[str]:
    value = str(name if name is not None else '').strip()
    return value or None


# ==============================================================================
# SERVICIO
# ==============================================================================

class AccessService:
    """
    Servicio de autenticación y allowlist.

    Responsabilidades:
    - Resolver token → Member (o AccessError con el código HTTP correcto)
    - Gate por rol (admin incluye innkjøper)
    - CRUD de la allowlist con doble control de admin
    """

    def __init__(
        self,
        auth: IAuth,
        allowlist_repo: IAllowlistRepository,
        admin_emails: Iterable[str] = (),
        admin_password: str = ''
    ):
        """
        Inicializa el servicio de acceso.

        Args:
            auth: Servicio de auth de la plataforma
            allowlist_repo: Repositorio de la allowlist
            admin_emails: Emails con acceso a la administración de la allowlist
            admin_password: Contraseña extra de la administración de la allowlist
        """
        self.auth = auth
        self.allowlist_repo = allowlist_repo
        self.admin_emails: FrozenSet[str] = frozenset(normalize_email(e) for e in admin_emails)
        self.admin_password = admin_password or ''

    # =========================================================================
    # AUTENTICACIÓN
    # =========================================================================

    def verify_token(self, token: Optional[str]) -> Dict[str, Any]:
        """
        Verifica un token contra la plataforma.

        Returns:
            {'id', 'email'} con email normalizado

        Raises:
            AccessError: 401 si falta el token o no es válido
        """
        if not token:
            raise AccessError("Missing bearer token", 401)
        try:
            user = self.auth.get_user(token)
        except PlatformError as e:
            # Igual que AuthError: cualquier fallo de verificación es sesión inválida
            if not isinstance(e, AuthError):
                logger.warning("Verificación de token falló: %s", e.message)
            raise AccessError("Invalid session", 401) from e
        email = normalize_email(user.get('email'))
        if not email:
            raise AccessError("Invalid session", 401)
        return {'id': user.get('id'), 'email': email}

    def authenticate(self, token: Optional[str]) -> Member:
        """
        Resuelve el miembro de la allowlist para un token.

        Raises:
            AccessError: 401 sin token o token inválido, 500 si falla la
                lectura de la allowlist, 403 {'ok': False, 'denied': True}
                si el email no está aprobado
        """
        user = self.verify_token(token)
        try:
            row = self.allowlist_repo.get_by_email(user['email'])
        except PlatformError as e:
            logger.error("Lectura de allowlist falló: %s", e.message)
            raise AccessError(e.message, 500) from e

        if not row or not row.get('email'):
            raise AccessError("denied", 403, {'ok': False, 'denied': True})

        return Member(
            user_id=user['id'],
            email=user['email'],
            role=normalize_role(row.get('role')),
            display_name=normalize_display_name(row.get('display_name')),
        )

    def whoami(self, token: Optional[str]) -> Dict[str, Any]:
        """Respuesta de /api/auth/me."""
        member = self.authenticate(token)
        return {'ok': True, **member.to_dict()}

    @staticmethod
    def require_role(member: Member, *roles: Role) -> None:
        """
        Verifica el rol del miembro.

        Raises:
            AccessError: 403 si el rol no alcanza
        """
        if not member.has_role(*roles):
            raise AccessError("Forbidden", 403)

    # =========================================================================
    # ADMINISTRACIÓN DE ALLOWLIST
    # =========================================================================

    def assert_allowlist_admin(self, password: Optional[str], token: Optional[str]) -> str:
        """
        Doble control: contraseña de admin + email en ACCESS_ADMIN_EMAILS.

        Returns:
            Email del admin

        Raises:
            AccessError: 401 contraseña o sesión inválida, 403 si no es admin
        """
        if not password or not self.admin_password or password != self.admin_password:
            raise AccessError("Bad admin password", 401)
        user = self.verify_token(token)
        if user['email'] not in self.admin_emails:
            raise AccessError("Not an admin", 403)
        return user['email']

    def list_allowlist(self) -> Dict[str, Any]:
        return {'ok': True, 'rows': self.allowlist_repo.list_entries()}

    def add_to_allowlist(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Agrega o reemplaza un email (upsert por email).

        Args:
            data: {'email', 'role'?, 'display_name'?}
        """
        email = normalize_email(data.get('email'))
        if not is_valid_email(email):
            return {'ok': False, 'error': 'Invalid email', 'status': 400}
        role = parse_role(data.get('role')) or Role.KUNDE
        display_name = normalize_display_name(data.get('display_name'))
        self.allowlist_repo.upsert_entry(email, role.value, display_name)
        logger.info("Allowlist: %s agregado como %s", email, role.value)
        return {'ok': True}

    def update_allowlist(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Actualiza rol y/o display_name de un email existente.

        Un rol presente pero inválido es un error; un patch vacío también.
        """
        email = normalize_email(data.get('email'))
        if not is_valid_email(email):
            return {'ok': False, 'error': 'Invalid email', 'status': 400}

        patch = {}
        if 'role' in data:
            role = parse_role(data.get('role'))
            if role is None:
                return {'ok': False, 'error': 'Invalid role', 'status': 400}
            patch['role'] = role.value
        if 'display_name' in data and data.get('display_name') is not None:
            patch['display_name'] = normalize_display_name(data.get('display_name'))

        if not patch:
            return {'ok': False, 'error': 'Nothing to update', 'status': 400}

        self.allowlist_repo.update_entry(email, patch)
        return {'ok': True}

    def remove_from_allowlist(self, email: Any) -> Dict[str, Any]:
        email = normalize_email(email)
        if not is_valid_email(email):
            return {'ok': False, 'error': 'Missing email', 'status': 400}
        self.allowlist_repo.delete_entry(email)
        logger.info("Allowlist: %s eliminado", email)
        return {'ok': True}
