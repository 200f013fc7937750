# ==============================================================================
# REPOSITORIOS DE PEDIDOS
# ==============================================================================
# Tablas: orders, order_items
# ==============================================================================

from typing import Any, Dict, List, Sequence

from .base import TableRepository


class OrderRepository(TableRepository):
    """
    Pedidos.

    Formato de una fila:
    {
        "id": "...", "created_by": "<user id>", "status": "SUBMITTED",
        "project_name": "...", "contact_name": "...", "delivery_address": "...",
        "expected_delivery_date": "2024-05-01", "confirmation_file_path": null,
        "updated_at": null, "updated_by_name": null, ...
    }
    """

    TABLE = 'orders'

    def list_by_creator(self, user_id: str) -> List[Dict[str, Any]]:
        return self.find_all([('created_by', 'eq', user_id)], [('created_at', False)])

    def list_all(self) -> List[Dict[str, Any]]:
        return self.find_all(order=[('created_at', False)])


class OrderItemRepository(TableRepository):
    """Líneas de pedido (copia de product_no, name y precio al momento del pedido)."""

    TABLE = 'order_items'

    def list_for_order(self, order_id: str) -> List[Dict[str, Any]]:
        return self.find_all(
            [('order_id', 'eq', order_id)],
            [('product_no', True)],
            columns='id, order_id, product_id, product_no, name, unit_price, qty',
        )

    def list_for_orders(self, order_ids: Sequence[str]) -> List[Dict[str, Any]]:
        return self.find_in('order_id', list(order_ids), 'order_id, qty, unit_price')

    def delete_for_order(self, order_id: str) -> List[Dict[str, Any]]:
        return self.delete_where([('order_id', 'eq', order_id)])
