# ==============================================================================
# SERVICIO DE CATÁLOGO
# ==============================================================================
# Centraliza la lógica de productos:
#
# - Listado (clientes: activos por nombre; admin: todos, más nuevos primero)
# - Detalle con galería, documentos y productos relacionados
# - CRUD de admin, miniatura, galería, documentos y relaciones
#
# Los enlaces firmados se piden en lote al FileService; un fallo individual
# deja el enlace fuera sin romper la respuesta.
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional

from orderflow.models import (
    BUCKET_PRODUCT_FILES,
    BUCKET_PRODUCT_IMAGES,
    Member,
    RelationType,
)
from orderflow.repositories.product_repository import (
    ProductFileRepository,
    ProductImageRepository,
    ProductRelationRepository,
    ProductRepository,
)
from orderflow.services.file_service import (
    FileService,
    product_file_path,
    product_image_path,
    product_thumb_path,
)


logger = logging.getLogger(__name__)


def parse_price(raw: Any) -> Any:
    """
    Precio desde texto o número ("1 234,50" → 1234.5).

    Returns:
        float, None si está vacío, o False si es inválido
    """
    if raw is None:
        return None
    if isinstance(raw, bool):
        return False
    if isinstance(raw, (int, float)):
        return float(raw)
    text = str(raw).strip().replace(' ', '').replace(',', '.')
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return False


class CatalogService:
    """
    Servicio de catálogo de productos.

    Responsabilidades:
    - Consultas del catálogo con búsqueda por product_no o nombre
    - Detalle de producto con medios firmados
    - Administración de productos, medios y relaciones
    """

    def __init__(
        self,
        product_repo: ProductRepository,
        image_repo: ProductImageRepository,
        file_repo: ProductFileRepository,
        relation_repo: ProductRelationRepository,
        file_service: FileService
    ):
        self.product_repo = product_repo
        self.image_repo = image_repo
        self.file_repo = file_repo
        self.relation_repo = relation_repo
        self.file_service = file_service

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def list_products(self, search: str = None, include_inactive: bool = False,
                      with_thumbs: bool = True) -> Dict[str, Any]:
        """
        Lista productos para el catálogo.

        Args:
            search: Texto a buscar en product_no o nombre
            include_inactive: True para la vista de admin
            with_thumbs: Incluir enlaces firmados de miniaturas

        Returns:
            {'ok': True, 'products': [...], 'thumb_urls': {path: url}}
        """
        if include_inactive:
            products = self.product_repo.list_for_admin(search)
        else:
            products = self.product_repo.list_active(search)

        thumb_urls = {}
        if with_thumbs:
            thumb_urls = self.thumbnail_urls(products)
        return {'ok': True, 'products': products, 'thumb_urls': thumb_urls}

    def thumbnail_urls(self, products: List[Dict[str, Any]]) -> Dict[str, str]:
        """Enlaces firmados de las miniaturas (paths sin duplicados)."""
        return self.file_service.signed_urls(
            BUCKET_PRODUCT_IMAGES, (p.get('thumb_path') for p in products)
        )

    def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        return self.product_repo.get_by_id(product_id)

    def get_product_detail(self, product_id: str, member: Member) -> Dict[str, Any]:
        """
        Detalle de producto: fila, galería, documentos y relacionados.

        Los productos inactivos solo los ven innkjøper y admin.
        """
        product = self.product_repo.get_by_id(product_id)
        if not product or (product.get('is_active') is False and not member.is_purchaser()):
            return {'ok': False, 'error': 'Produkt ikke funnet', 'status': 404}

        images = self.image_repo.list_for_product(product_id)
        files = self.file_repo.list_for_product(product_id)
        relations = self.get_relations(product_id)

        thumb_path = product.get('thumb_path')
        urls = {
            'thumb': self.file_service.signed_urls(BUCKET_PRODUCT_IMAGES, [thumb_path]).get(thumb_path)
            if thumb_path else None,
            'images': self.file_service.signed_urls(
                BUCKET_PRODUCT_IMAGES, (i.get('storage_path') for i in images)
            ),
            'files': self.file_service.signed_urls(
                BUCKET_PRODUCT_FILES, (f.get('relative_path') for f in files), download=True
            ),
        }

        return {
            'ok': True,
            'product': product,
            'images': images,
            'files': files,
            'accessories': relations['accessories'],
            'spare_parts': relations['spare_parts'],
            'urls': urls,
        }

    def get_relations(self, product_id: str) -> Dict[str, List[Dict[str, Any]]]:
        """
        Productos relacionados agrupados por tipo.

        Returns:
            {'accessories': [...], 'spare_parts': [...]} con cada entrada
            {'link_id', 'relation_type', 'sort_order', 'product'}
        """
        links = self.relation_repo.list_for_product(product_id)
        related = self.product_repo.find_in(
            'id', [l.get('related_product_id') for l in links],
            'id, product_no, name, list_price, thumb_path, is_active',
        )
        by_id = {str(p.get('id')): p for p in related}

        grouped = {'accessories': [], 'spare_parts': []}
        for link in links:
            product = by_id.get(str(link.get('related_product_id')))
            if not product:
                continue
            entry = {
                'link_id': link.get('id'),
                'relation_type': link.get('relation_type'),
                'sort_order': link.get('sort_order'),
                'product': product,
            }
            if link.get('relation_type') == RelationType.ACCESSORY.value:
                grouped['accessories'].append(entry)
            elif link.get('relation_type') == RelationType.SPARE_PART.value:
                grouped['spare_parts'].append(entry)
        return grouped

    # =========================================================================
    # ADMINISTRACIÓN DE PRODUCTOS
    # =========================================================================

    def create_product(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Crea un producto.

        Args:
            data: {'product_no', 'name'?, 'list_price'?, 'is_active'?, 'description'?}
        """
        product_no = str(data.get('product_no') or '').strip()
        if not product_no:
            return {'ok': False, 'error': 'Produktnr (product_no) må være satt.', 'status': 400}

        price = parse_price(data.get('list_price'))
        if price is False:
            return {'ok': False, 'error': 'Ugyldig pris.', 'status': 400}

        name = str(data.get('name') or '').strip() or None
        row = {
            'product_no': product_no,
            'name': name,
            'list_price': price,
            'is_active': data.get('is_active') is not False,
        }
        if data.get('description') is not None:
            row['description'] = str(data.get('description')).strip() or None

        created = self.product_repo.insert(row)
        if not created.get('id'):
            return {'ok': False, 'error': 'Produktet ble ikke opprettet.', 'status': 500}
        logger.info("Producto creado: %s (%s)", product_no, created.get('id'))
        return {'ok': True, 'product': created}

    def update_product(self, product_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Actualiza nombre, precio, estado activo y descripción."""
        patch = {}
        if 'name' in data:
            patch['name'] = str(data.get('name') or '').strip() or None
        if 'list_price' in data:
            price = parse_price(data.get('list_price'))
            if price is False:
                return {'ok': False, 'error': 'Ugyldig pris.', 'status': 400}
            patch['list_price'] = price
        if 'is_active' in data:
            patch['is_active'] = bool(data.get('is_active'))
        if 'description' in data:
            patch['description'] = str(data.get('description') or '').strip() or None

        if not patch:
            return {'ok': False, 'error': 'Nothing to update', 'status': 400}

        updated = self.product_repo.update_by_id(product_id, patch)
        if not updated:
            return {'ok': False, 'error': 'Produkt ikke funnet', 'status': 404}
        return {'ok': True, 'product': updated}

    def delete_product(self, product_id: str) -> Dict[str, Any]:
        removed = self.product_repo.delete_by_id(product_id)
        if not removed:
            return {'ok': False, 'error': 'Produkt ikke funnet', 'status': 404}
        logger.info("Producto eliminado: %s", removed.get('product_no'))
        return {'ok': True}

    # =========================================================================
    # MEDIOS
    # =========================================================================

    def set_thumbnail(self, product_id: str, file_name: str, data: bytes,
                      content_type: str = None) -> Dict[str, Any]:
        """Sube una miniatura nueva y la asigna al producto."""
        product = self.product_repo.get_by_id(product_id)
        if not product:
            return {'ok': False, 'error': 'Produkt ikke funnet', 'status': 404}

        path = product_thumb_path(product_id, file_name)
        self.file_service.upload(BUCKET_PRODUCT_IMAGES, path, data,
                                 content_type or 'image/jpeg', upsert=True)
        self.product_repo.update_by_id(product_id, {'thumb_path': path})
        return {'ok': True, 'thumb_path': path}

    def delete_thumbnail(self, product_id: str) -> Dict[str, Any]:
        """Borra el objeto de la miniatura y limpia thumb_path."""
        product = self.product_repo.get_by_id(product_id)
        if not product:
            return {'ok': False, 'error': 'Produkt ikke funnet', 'status': 404}
        path = product.get('thumb_path')
        if not path:
            return {'ok': False, 'error': 'Produktet har ingen thumbnail.', 'status': 400}

        self.file_service.remove(BUCKET_PRODUCT_IMAGES, path)
        self.product_repo.update_by_id(product_id, {'thumb_path': None})
        return {'ok': True}

    def add_gallery_images(self, product_id: str, uploads: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Sube imágenes de galería.

        Args:
            uploads: Lista de {'file_name', 'data', 'content_type'}

        Returns:
            {'ok': True, 'images': [...]} con sort_order siguiendo al máximo actual
        """
        if not uploads:
            return {'ok': False, 'error': 'Velg ett eller flere bilder først.', 'status': 400}
        if not self.product_repo.get_by_id(product_id):
            return {'ok': False, 'error': 'Produkt ikke funnet', 'status': 404}

        existing = self.image_repo.list_for_product(product_id)
        sort = max((int(i.get('sort_order') or 0) for i in existing), default=0)

        rows = []
        for upload in uploads:
            sort += 1
            path = product_image_path(product_id, upload.get('file_name'))
            self.file_service.upload(BUCKET_PRODUCT_IMAGES, path, upload.get('data') or b'',
                                     upload.get('content_type') or 'image/jpeg')
            rows.append({
                'product_id': product_id,
                'storage_bucket': BUCKET_PRODUCT_IMAGES,
                'storage_path': path,
                'caption': None,
                'sort_order': sort,
            })

        created = self.image_repo.insert_many(rows)
        return {'ok': True, 'images': created}

    def delete_image(self, image_id: str) -> Dict[str, Any]:
        """Borra el objeto de storage y luego la fila."""
        image = self.image_repo.get_by_id(image_id)
        if not image:
            return {'ok': False, 'error': 'Bilde ikke funnet', 'status': 404}
        path = image.get('storage_path')
        if not path:
            return {'ok': False, 'error': 'Mangler storage_path på bildet.', 'status': 400}

        self.file_service.remove(image.get('storage_bucket') or BUCKET_PRODUCT_IMAGES, path)
        self.image_repo.delete_by_id(image_id)
        return {'ok': True}

    def add_documents(self, product_id: str, uploads: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Sube documentos al bucket de archivos (file_type 'dok')."""
        if not uploads:
            return {'ok': False, 'error': 'Velg ett eller flere dokumenter først.', 'status': 400}
        if not self.product_repo.get_by_id(product_id):
            return {'ok': False, 'error': 'Produkt ikke funnet', 'status': 404}

        rows = []
        for upload in uploads:
            file_name = upload.get('file_name') or 'doc'
            path = product_file_path(product_id, file_name)
            self.file_service.upload(BUCKET_PRODUCT_FILES, path, upload.get('data') or b'',
                                     upload.get('content_type') or 'application/octet-stream')
            rows.append({
                'product_id': product_id,
                'relative_path': path,
                'file_type': 'dok',
                'title': file_name,
            })

        created = self.file_repo.insert_many(rows)
        return {'ok': True, 'files': created}

    def delete_document(self, file_id: str) -> Dict[str, Any]:
        document = self.file_repo.get_by_id(file_id)
        if not document:
            return {'ok': False, 'error': 'Dokument ikke funnet', 'status': 404}

        self.file_service.remove(BUCKET_PRODUCT_FILES, document.get('relative_path'))
        self.file_repo.delete_by_id(file_id)
        return {'ok': True}

    # =========================================================================
    # RELACIONES
    # =========================================================================

    def add_relation(self, product_id: str, related_product_id: str,
                     relation_type: str) -> Dict[str, Any]:
        """
        Agrega un accesorio o repuesto.

        El sort_order sigue al máximo actual del mismo tipo.
        """
        try:
            rel_type = RelationType(str(relation_type or '').strip().upper())
        except ValueError:
            return {'ok': False, 'error': 'Ugyldig relasjonstype.', 'status': 400}
        if not related_product_id:
            return {'ok': False, 'error': 'Velg et produkt å legge til.', 'status': 400}
        if str(related_product_id) == str(product_id):
            return {'ok': False, 'error': 'Et produkt kan ikke kobles til seg selv.', 'status': 400}
        if not self.product_repo.get_by_id(product_id) or not self.product_repo.get_by_id(related_product_id):
            return {'ok': False, 'error': 'Produkt ikke funnet', 'status': 404}

        existing = self.relation_repo.list_for_product(product_id)
        max_sort = max(
            (int(r.get('sort_order') or 0) for r in existing if r.get('relation_type') == rel_type.value),
            default=0,
        )
        created = self.relation_repo.insert({
            'product_id': product_id,
            'related_product_id': related_product_id,
            'relation_type': rel_type.value,
            'sort_order': max_sort + 1,
        })
        return {'ok': True, 'relation': created}

    def remove_relation(self, relation_id: str) -> Dict[str, Any]:
        removed = self.relation_repo.delete_by_id(relation_id)
        if not removed:
            return {'ok': False, 'error': 'Relasjon ikke funnet', 'status': 404}
        return {'ok': True}
