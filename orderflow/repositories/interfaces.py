# ==============================================================================
# INTERFACES DE REPOSITORIOS
# ==============================================================================
#
# Contratos que los servicios esperan de cada repositorio. Permiten:
#
# 1. INDEPENDENCIA DE LA PLATAFORMA
#    - Los servicios dependen de interfaces, NO de implementaciones concretas
#
# 2. TESTING
#    - Fácil crear dobles que implementen estas interfaces
#
# ==============================================================================

from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable


@runtime_checkable
class IAllowlistRepository(Protocol):
    """Interfaz para la allowlist de emails."""

    def get_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        ...

    def list_entries(self) -> List[Dict[str, Any]]:
        ...

    def upsert_entry(self, email: str, role: str, display_name: Optional[str]) -> Dict[str, Any]:
        ...

    def update_entry(self, email: str, patch: Dict[str, Any]) -> List[Dict[str, Any]]:
        ...

    def delete_entry(self, email: str) -> List[Dict[str, Any]]:
        ...


@runtime_checkable
class IProductRepository(Protocol):
    """Interfaz para el catálogo de productos."""

    def list_active(self, search: str = None) -> List[Dict[str, Any]]:
        ...

    def list_for_admin(self, search: str = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        ...

    def get_by_id(self, record_id: Any, columns: str = "*") -> Optional[Dict[str, Any]]:
        ...

    def get_by_product_nos(self, product_nos: Sequence[str]) -> List[Dict[str, Any]]:
        ...

    def upsert_by_product_no(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        ...


@runtime_checkable
class IOrderRepository(Protocol):
    """Interfaz para pedidos."""

    def get_by_id(self, record_id: Any, columns: str = "*") -> Optional[Dict[str, Any]]:
        ...

    def list_by_creator(self, user_id: str) -> List[Dict[str, Any]]:
        ...

    def list_all(self) -> List[Dict[str, Any]]:
        ...

    def insert(self, row: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def update_by_id(self, record_id: Any, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        ...

    def delete_by_id(self, record_id: Any) -> Optional[Dict[str, Any]]:
        ...


@runtime_checkable
class IOrderAuditRepository(Protocol):
    """Interfaz para la auditoría de pedidos."""

    def log(
        self,
        order_id: str,
        actor_email: str,
        actor_name: str,
        action: str,
        details: Dict[str, Any] = None
    ) -> Dict[str, Any]:
        ...

    def list_for_order(self, order_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        ...
