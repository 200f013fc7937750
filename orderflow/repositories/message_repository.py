# ==============================================================================
# REPOSITORIO DE MENSAJES (chat interno por pedido)
# ==============================================================================

from typing import Any, Dict, List, Optional

from .base import TableRepository


class OrderMessageRepository(TableRepository):
    """Mensajes del chat de un pedido, en orden cronológico."""

    TABLE = 'order_messages'

    def list_for_order(self, order_id: str, after: Optional[str] = None) -> List[Dict[str, Any]]:
        filters = [('order_id', 'eq', order_id)]
        if after:
            filters.append(('created_at', 'gt', after))
        return self.find_all(filters, [('created_at', True)])

    def delete_for_order(self, order_id: str) -> List[Dict[str, Any]]:
        return self.delete_where([('order_id', 'eq', order_id)])
