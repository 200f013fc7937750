# ==============================================================================
# SERVICIO DE CARRITO
# ==============================================================================
# Centraliza toda la lógica del carrito de pedidos.
# El carrito se almacena en la sesión de Flask (una lista de líneas por
# navegador, como el carrito en localStorage del cliente web).
# ==============================================================================

from typing import Any, Dict, List

from flask import session

from orderflow.models import CartItem, Product


class CartService:
    """
    Servicio para gestión del carrito.

    Responsabilidades:
    - Agregar/eliminar líneas (una por producto, cantidades acumuladas)
    - Cambiar cantidades
    - Calcular totales
    - Vaciar el carrito tras un pedido

    El carrito se almacena en session['orderflow_cart_v1'].
    """

    SESSION_KEY = 'orderflow_cart_v1'

    def _get_items(self) -> List[CartItem]:
        """
        Obtiene las líneas del carrito de la sesión.

        Entradas corruptas o sin producto se descartan.
        """
        raw = session.get(self.SESSION_KEY, [])
        if not isinstance(raw, list):
            return []
        items = []
        for entry in raw:
            if not isinstance(entry, dict):
                continue
            item = CartItem.from_dict(entry)
            if item.product_id and item.qty > 0:
                items.append(item)
        return items

    def _save_items(self, items: List[CartItem]) -> None:
        session[self.SESSION_KEY] = [i.to_dict() for i in items]
        session.modified = True

    def get_items(self) -> List[Dict[str, Any]]:
        return [i.to_dict() for i in self._get_items()]

    def get_cart(self) -> Dict[str, Any]:
        """
        Obtiene el carrito con totales calculados.

        Returns:
            Dict con items, total_items, total_amount, items_count
        """
        items = self._get_items()
        return {
            'items': [i.to_dict() for i in items],
            'total_items': sum(i.qty for i in items),
            'total_amount': round(sum(i.line_total for i in items), 2),
            'items_count': len(items),
        }

    def add_item(self, product: Dict[str, Any], qty: Any = 1) -> Dict[str, Any]:
        """
        Agrega un producto al carrito.

        Si el producto ya está, se suma la cantidad.

        Args:
            product: Fila del producto
            qty: Cantidad a agregar (> 0)

        Returns:
            Dict con resultado (ok, error, cart)
        """
        if not product or not product.get('id'):
            return {'ok': False, 'error': 'Produkt ikke funnet', 'status': 404}
        try:
            qty = int(qty)
        except (TypeError, ValueError):
            return {'ok': False, 'error': 'Ugyldig antall', 'status': 400}
        if qty <= 0:
            return {'ok': False, 'error': 'Antall må være større enn 0', 'status': 400}

        p = Product.from_dict(product)
        items = self._get_items()
        for item in items:
            if item.product_id == p.id:
                item.qty += qty
                break
        else:
            items.append(CartItem(
                product_id=p.id,
                product_no=p.product_no,
                name=p.name or p.product_no,
                list_price=p.list_price or 0.0,
                qty=qty,
            ))

        self._save_items(items)
        return {'ok': True, 'cart': self.get_cart()}

    def set_qty(self, product_id: str, qty: Any) -> Dict[str, Any]:
        """Cambia la cantidad de una línea; qty <= 0 la elimina."""
        try:
            qty = int(qty)
        except (TypeError, ValueError):
            return {'ok': False, 'error': 'Ugyldig antall', 'status': 400}

        items = self._get_items()
        if not any(i.product_id == str(product_id) for i in items):
            return {'ok': False, 'error': 'Produktet er ikke i handlekurven', 'status': 404}

        if qty <= 0:
            items = [i for i in items if i.product_id != str(product_id)]
        else:
            for item in items:
                if item.product_id == str(product_id):
                    item.qty = qty
        self._save_items(items)
        return {'ok': True, 'cart': self.get_cart()}

    def remove_item(self, product_id: str) -> Dict[str, Any]:
        items = [i for i in self._get_items() if i.product_id != str(product_id)]
        self._save_items(items)
        return {'ok': True, 'cart': self.get_cart()}

    def clear(self) -> None:
        """Vacía el carrito."""
        session[self.SESSION_KEY] = []
        session.modified = True
