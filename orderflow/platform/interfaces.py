# ==============================================================================
# INTERFACES DE PLATAFORMA
# ==============================================================================
#
# Contratos que cumplen las dos implementaciones de plataforma:
#
#   RestPlatform  → plataforma externa (REST: auth, tablas, storage)
#   LocalPlatform → archivos JSON + carpeta de archivos (desarrollo/tests)
#
# Los repositorios y servicios dependen de estas interfaces, NO de una
# implementación concreta. Cambiar de plataforma solo requiere cambiar la
# instanciación en app_container.py.
#
# FILTROS:
#   Cada filtro es una tupla (columna, operador, valor):
#     ('email', 'eq', 'a@b.no')
#     ('product_no', 'in', ['A1', 'B2'])
#     ('name', 'ilike', '%pumpe%')
#     ('created_at', 'gte', '2024-01-01')
#     (('product_no', 'name'), 'or_ilike', '%pumpe%')
#
# ORDEN:
#   Lista de tuplas (columna, ascendente): [('sort_order', True), ('created_at', True)]
# ==============================================================================

from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple, runtime_checkable


Filter = Tuple[Any, str, Any]
Ordering = Tuple[str, bool]

FILTER_OPERATORS = frozenset(['eq', 'neq', 'in', 'ilike', 'gt', 'gte', 'lt', 'lte', 'is', 'or_ilike'])


@runtime_checkable
class ITable(Protocol):
    """Consultas sobre una tabla de la plataforma."""

    name: str

    def select(
        self,
        columns: str = "*",
        filters: Sequence[Filter] = (),
        order: Sequence[Ordering] = (),
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Lee filas."""
        ...

    def insert(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Inserta filas y devuelve las filas guardadas."""
        ...

    def upsert(self, rows: List[Dict[str, Any]], on_conflict: Sequence[str]) -> List[Dict[str, Any]]:
        """Inserta o actualiza según las columnas de conflicto."""
        ...

    def update(self, patch: Dict[str, Any], filters: Sequence[Filter]) -> List[Dict[str, Any]]:
        """Actualiza las filas que cumplen los filtros."""
        ...

    def delete(self, filters: Sequence[Filter]) -> List[Dict[str, Any]]:
        """Elimina las filas que cumplen los filtros."""
        ...


@runtime_checkable
class IAuth(Protocol):
    """Servicio de autenticación de la plataforma."""

    def get_user(self, token: str) -> Dict[str, Any]:
        """Verifica un token y devuelve {'id', 'email'}."""
        ...

    def authorize_url(self, provider: str, redirect_to: str, code_challenge: str) -> str:
        """URL de inicio del flujo OAuth con PKCE."""
        ...

    def exchange_code_for_session(self, code: str, code_verifier: str) -> Dict[str, Any]:
        """Intercambia el código OAuth por una sesión."""
        ...


@runtime_checkable
class IStorage(Protocol):
    """Almacenamiento de objetos (buckets privados)."""

    def create_signed_url(self, bucket: str, path: str, expires_in: int, download: bool = False) -> str:
        """Crea un enlace de descarga temporal."""
        ...

    def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: Optional[str] = None,
        upsert: bool = False,
    ) -> str:
        """Sube un objeto y devuelve su path."""
        ...

    def remove(self, bucket: str, paths: List[str]) -> List[str]:
        """Elimina objetos y devuelve los paths eliminados."""
        ...


@runtime_checkable
class IPlatform(Protocol):
    """Plataforma completa: auth + tablas + storage."""

    auth: IAuth
    storage: IStorage

    def table(self, name: str) -> ITable:
        """Obtiene el manejador de una tabla."""
        ...
