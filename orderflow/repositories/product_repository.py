# ==============================================================================
# REPOSITORIOS DE CATÁLOGO
# ==============================================================================
# Tablas: products, product_images, product_files, product_relations
# ==============================================================================

from typing import Any, Dict, List, Optional, Sequence

from .base import TableRepository


PRODUCT_COLUMNS = 'id, product_no, name, list_price, thumb_path, is_active, description, created_at'


def _search_filter(search: Optional[str]) -> list:
    term = (search or '').strip()
    if not term:
        return []
    return [(('product_no', 'name'), 'or_ilike', f"%{term}%")]


class ProductRepository(TableRepository):
    """Productos del catálogo (product_no único)."""

    TABLE = 'products'

    def list_active(self, search: str = None) -> List[Dict[str, Any]]:
        """Productos activos ordenados por nombre (vista de clientes)."""
        filters = [('is_active', 'eq', True)] + _search_filter(search)
        return self.find_all(filters, [('name', True)], columns=PRODUCT_COLUMNS)

    def list_for_admin(self, search: str = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Todos los productos (incluye inactivos), más nuevos primero."""
        return self.find_all(
            _search_filter(search), [('created_at', False)], limit, columns=PRODUCT_COLUMNS
        )

    def get_by_product_nos(self, product_nos: Sequence[str]) -> List[Dict[str, Any]]:
        return self.find_in('product_no', list(product_nos), 'id, product_no')

    def upsert_by_product_no(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return self.upsert_many(rows, on_conflict=['product_no'])


class ProductImageRepository(TableRepository):
    """Galería de imágenes (único por producto + storage_path)."""

    TABLE = 'product_images'
    ON_CONFLICT = ['product_id', 'storage_path']

    def list_for_product(self, product_id: str) -> List[Dict[str, Any]]:
        return self.find_all(
            [('product_id', 'eq', product_id)],
            [('sort_order', True), ('created_at', True)],
            columns='id, product_id, storage_bucket, storage_path, caption, sort_order, created_at',
        )

    def upsert_images(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return self.upsert_many(rows, on_conflict=self.ON_CONFLICT)


class ProductFileRepository(TableRepository):
    """Documentos del producto (único por producto + relative_path)."""

    TABLE = 'product_files'
    ON_CONFLICT = ['product_id', 'relative_path']

    def list_for_product(self, product_id: str) -> List[Dict[str, Any]]:
        return self.find_all(
            [('product_id', 'eq', product_id)],
            [('created_at', False)],
            columns='id, product_id, relative_path, file_type, title, created_at',
        )

    def upsert_files(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return self.upsert_many(rows, on_conflict=self.ON_CONFLICT)


class ProductRelationRepository(TableRepository):
    """Accesorios y repuestos (único por producto + relacionado + tipo)."""

    TABLE = 'product_relations'
    ON_CONFLICT = ['product_id', 'related_product_id', 'relation_type']

    def list_for_product(self, product_id: str) -> List[Dict[str, Any]]:
        return self.find_all(
            [('product_id', 'eq', product_id)],
            [('relation_type', True), ('sort_order', True), ('created_at', True)],
            columns='id, product_id, related_product_id, relation_type, sort_order, created_at',
        )

    def upsert_relations(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return self.upsert_many(rows, on_conflict=self.ON_CONFLICT)
