# ==============================================================================
# CAPA DE REPOSITORIOS - Acceso a datos
# ==============================================================================
# Esta capa encapsula todo el acceso a las tablas de la plataforma.
# Los services NO conocen nombres de tablas ni sintaxis de filtros.
#
# ESTRUCTURA:
# ├── interfaces.py           → Protocolos/Interfaces
# ├── base.py                 → TableRepository (operaciones comunes)
# ├── allowlist_repository.py → allowed_emails
# ├── product_repository.py   → products, product_images, product_files, product_relations
# ├── order_repository.py     → orders, order_items
# ├── message_repository.py   → order_messages
# └── audit_repository.py     → order_audit
# ==============================================================================

from orderflow.repositories.interfaces import (
    IAllowlistRepository,
    IProductRepository,
    IOrderRepository,
    IOrderAuditRepository,
)

from orderflow.repositories.base import TableRepository
from orderflow.repositories.allowlist_repository import AllowlistRepository
from orderflow.repositories.product_repository import (
    ProductRepository,
    ProductImageRepository,
    ProductFileRepository,
    ProductRelationRepository,
)
from orderflow.repositories.order_repository import OrderRepository, OrderItemRepository
from orderflow.repositories.message_repository import OrderMessageRepository
from orderflow.repositories.audit_repository import OrderAuditRepository

__all__ = [
    # Interfaces
    'IAllowlistRepository',
    'IProductRepository',
    'IOrderRepository',
    'IOrderAuditRepository',

    # Clase base
    'TableRepository',

    # Implementaciones
    'AllowlistRepository',
    'ProductRepository',
    'ProductImageRepository',
    'ProductFileRepository',
    'ProductRelationRepository',
    'OrderRepository',
    'OrderItemRepository',
    'OrderMessageRepository',
    'OrderAuditRepository',
]
