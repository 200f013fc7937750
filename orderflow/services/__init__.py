# ==============================================================================
# CAPA DE SERVICIOS - Lógica de negocio
# ==============================================================================
# Esta capa contiene TODA la lógica de negocio de la aplicación.
#
# PRINCIPIOS:
# 1. Los servicios orquestan operaciones entre repositorios
# 2. Aplican reglas de negocio y validaciones
# 3. Las rutas (blueprints) solo llaman a servicios
# 4. Los servicios NO conocen la plataforma (REST o local)
#
# ESTRUCTURA:
# ├── access_service.py  → Token, allowlist, roles (kunde, innkjøper, admin)
# ├── catalog_service.py → Productos, medios, relaciones
# ├── cart_service.py    → Carrito en sesión
# ├── order_service.py   → Checkout, pedidos, compras, ETA, borrado
# ├── chat_service.py    → Mensajes por pedido
# ├── audit_service.py   → Registro de cambios de pedidos
# ├── file_service.py    → Enlaces firmados y paths de storage
# └── import_service.py  → Importación masiva desde Excel/CSV
#
# SEGURIDAD:
# El rol nunca viene del cliente. AccessService lo lee de la allowlist
# después de verificar el token contra la plataforma.
# ==============================================================================

from orderflow.services.access_service import AccessError, AccessService
from orderflow.services.audit_service import AuditService
from orderflow.services.cart_service import CartService
from orderflow.services.catalog_service import CatalogService
from orderflow.services.chat_service import ChatService
from orderflow.services.file_service import FileService, SignedUrlCache
from orderflow.services.import_service import ImportFileError, ImportService
from orderflow.services.order_service import OrderService

__all__ = [
    'AccessError',
    'AccessService',
    'AuditService',
    'CartService',
    'CatalogService',
    'ChatService',
    'FileService',
    'SignedUrlCache',
    'ImportFileError',
    'ImportService',
    'OrderService',
]
