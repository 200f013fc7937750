# ==============================================================================
# SERVICIO DE AUDITORÍA
# ==============================================================================
# Centraliza el registro de auditoría de pedidos.
# Formatea los cambios y los guarda en order_audit.
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional

from orderflow.models import Member
from orderflow.platform import PlatformError
from orderflow.repositories.interfaces import IOrderAuditRepository


logger = logging.getLogger(__name__)


class AuditService:
    """
    Servicio para registro y consulta de auditoría de pedidos.

    Centraliza:
    - Registro de eventos (creado, actualizado, confirmación subida...)
    - Formato de cambios de estado (from → to)
    - Consulta por pedido
    """

    # Acciones registradas
    ACTION_CREATED = 'created'
    ACTION_UPDATED = 'updated'
    ACTION_CONFIRMATION_UPLOADED = 'confirmation_uploaded'

    def __init__(self, audit_repo: IOrderAuditRepository):
        """
        Inicializa el servicio de auditoría.

        Args:
            audit_repo: Repositorio de auditoría
        """
        self.audit_repo = audit_repo

    # =========================================================================
    # REGISTRO DE EVENTOS
    # =========================================================================

    def record(
        self,
        order_id: str,
        actor: Optional[Member],
        action: str,
        details: Dict[str, Any] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Registra un evento de auditoría.

        Un fallo al escribir la auditoría no anula la operación principal
        (que ya se guardó); se registra en el log y se devuelve None.

        Args:
            order_id: Pedido afectado
            actor: Miembro que realizó la acción (None = sistema)
            action: Acción realizada
            details: Detalles adicionales

        Returns:
            Fila creada o None si no se pudo guardar
        """
        email = actor.email if actor else 'system'
        name = actor.author_name if actor else 'system'
        try:
            return self.audit_repo.log(order_id, email, name, action, details)
        except PlatformError as e:
            logger.error("No se pudo registrar auditoría %s para %s: %s", action, order_id, e.message)
            return None

    def log_order_created(self, actor: Member, order_id: str, items_count: int, total: float) -> None:
        self.record(
            order_id, actor, self.ACTION_CREATED,
            {'items_count': items_count, 'total': total},
        )

    def log_order_updated(
        self,
        actor: Member,
        order_id: str,
        before: Dict[str, Any],
        patch: Dict[str, Any]
    ) -> None:
        """
        Registra los campos cambiados de un pedido.

        Args:
            actor: Quien cambió el pedido
            order_id: ID del pedido
            before: Fila antes del cambio
            patch: Campos enviados
        """
        changes = describe_changes(before, patch)
        if not changes:
            return
        self.record(order_id, actor, self.ACTION_UPDATED, {'changes': changes})

    def log_confirmation_uploaded(self, actor: Member, order_id: str, path: str) -> None:
        self.record(order_id, actor, self.ACTION_CONFIRMATION_UPLOADED, {'path': path})

    # =========================================================================
    # CONSULTA
    # =========================================================================

    def list_for_order(self, order_id: str) -> List[Dict[str, Any]]:
        """Eventos de un pedido, más recientes primero."""
        return self.audit_repo.list_for_order(order_id)


# Campos del pedido que no se auditan (los pone el sistema)
_IGNORED_FIELDS = frozenset(['updated_at', 'updated_by_name'])


def describe_changes(before: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, str]:
    """
    Compara un pedido con el patch aplicado.

    Returns:
        {campo: "valor anterior → valor nuevo"} solo para campos que cambiaron
    """
    changes = {}
    for key, new_value in patch.items():
        if key in _IGNORED_FIELDS:
            continue
        old_value = before.get(key)
        if (old_value or None) == (new_value or None):
            continue
        changes[key] = f"{old_value if old_value is not None else '-'} → {new_value if new_value is not None else '-'}"
    return changes
