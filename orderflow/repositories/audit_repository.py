# ==============================================================================
# REPOSITORIO DE AUDITORÍA
# ==============================================================================
# Encapsula todo el acceso a la tabla order_audit.
# Una fila por evento:
#   {"order_id", "actor_email", "actor_name", "action", "details", "created_at"}
# ==============================================================================

from typing import Any, Dict, List, Optional

from .base import TableRepository


class OrderAuditRepository(TableRepository):
    """
    Repositorio del log de auditoría de pedidos.

    El log es solo de inserción; las filas se borran únicamente junto con
    su pedido.
    """

    TABLE = 'order_audit'

    def log(
        self,
        order_id: str,
        actor_email: str,
        actor_name: str,
        action: str,
        details: Dict[str, Any] = None
    ) -> Dict[str, Any]:
        """
        Registra un nuevo evento de auditoría.

        Args:
            order_id: Pedido afectado
            actor_email: Email de quien realizó la acción
            actor_name: Nombre visible de quien realizó la acción
            action: Acción (created, updated, confirmation_uploaded...)
            details: Detalles adicionales
        """
        return self.insert({
            'order_id': order_id,
            'actor_email': actor_email or 'system',
            'actor_name': actor_name or actor_email or 'system',
            'action': action,
            'details': details or {},
        })

    def list_for_order(self, order_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Eventos de un pedido, más recientes primero."""
        return self.find_all([('order_id', 'eq', order_id)], [('created_at', False)], limit)

    def delete_for_order(self, order_id: str) -> List[Dict[str, Any]]:
        return self.delete_where([('order_id', 'eq', order_id)])
