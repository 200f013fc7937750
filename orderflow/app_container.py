# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS - Inyección de servicios
# ==============================================================================
# Este módulo proporciona una forma centralizada de obtener instancias
# de la plataforma, repositorios y servicios. Facilita:
#   - Inyección de dependencias
#   - Testing (se puede pasar una LocalPlatform o un stub)
#   - Cambiar de plataforma sin tocar servicios
#
# PLATAFORMA:
#   PLATFORM_URL definido → RestPlatform (HTTP contra la plataforma externa)
#   PLATFORM_URL vacío    → LocalPlatform (JSON + archivos en disco)
#
# Los servicios dependen de repositorios, y los repositorios solo de la
# interfaz IPlatform: cambiar de plataforma no requiere cambios en services/.
# ==============================================================================

from typing import Optional

from orderflow.config import Settings
from orderflow.platform import IPlatform, create_platform

# ═══════════════════════════════════════════════════════════════════════════════
# REPOSITORIOS - Una clase por tabla
# ═══════════════════════════════════════════════════════════════════════════════
from orderflow.repositories import (
    AllowlistRepository,
    OrderAuditRepository,
    OrderItemRepository,
    OrderMessageRepository,
    OrderRepository,
    ProductFileRepository,
    ProductImageRepository,
    ProductRelationRepository,
    ProductRepository,
)

# ═══════════════════════════════════════════════════════════════════════════════
# SERVICIOS - Capa de lógica de negocio
# ═══════════════════════════════════════════════════════════════════════════════
from orderflow.services import (
    AccessService,
    AuditService,
    CartService,
    CatalogService,
    ChatService,
    FileService,
    ImportService,
    OrderService,
)


class AppContainer:
    """
    Contenedor de dependencias de la aplicación.

    Implementa el patrón Singleton para asegurar una única instancia
    de cada repositorio y servicio.

    Uso:
        container = AppContainer(settings)
        order_service = container.order_service
        catalog_service = container.catalog_service
    """

    _instance: Optional['AppContainer'] = None

    def __new__(cls, settings: Settings = None, platform: IPlatform = None):
        """Singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, settings: Settings = None, platform: IPlatform = None):
        """
        Inicializa el contenedor.

        Args:
            settings: Configuración (por defecto Settings.from_env())
            platform: Plataforma ya construida (por defecto según settings)
        """
        if self._initialized:
            return

        self._settings = settings or Settings.from_env()
        self._platform: Optional[IPlatform] = platform

        self.reset()
        self._initialized = True

    # =========================================================================
    # CONFIGURACIÓN / PLATAFORMA
    # =========================================================================

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def platform(self) -> IPlatform:
        """Plataforma externa o local (singleton)."""
        if self._platform is None:
            self._platform = create_platform(self._settings)
        return self._platform

    # =========================================================================
    # REPOSITORIOS
    # =========================================================================

    @property
    def allowlist_repo(self) -> AllowlistRepository:
        """Repositorio de la allowlist (singleton)."""
        if self._allowlist_repo is None:
            self._allowlist_repo = AllowlistRepository(self.platform)
        return self._allowlist_repo

    @property
    def product_repo(self) -> ProductRepository:
        """Repositorio de productos (singleton)."""
        if self._product_repo is None:
            self._product_repo = ProductRepository(self.platform)
        return self._product_repo

    @property
    def image_repo(self) -> ProductImageRepository:
        if self._image_repo is None:
            self._image_repo = ProductImageRepository(self.platform)
        return self._image_repo

    @property
    def file_repo(self) -> ProductFileRepository:
        if self._file_repo is None:
            self._file_repo = ProductFileRepository(self.platform)
        return self._file_repo

    @property
    def relation_repo(self) -> ProductRelationRepository:
        if self._relation_repo is None:
            self._relation_repo = ProductRelationRepository(self.platform)
        return self._relation_repo

    @property
    def order_repo(self) -> OrderRepository:
        """Repositorio de pedidos (singleton)."""
        if self._order_repo is None:
            self._order_repo = OrderRepository(self.platform)
        return self._order_repo

    @property
    def item_repo(self) -> OrderItemRepository:
        if self._item_repo is None:
            self._item_repo = OrderItemRepository(self.platform)
        return self._item_repo

    @property
    def message_repo(self) -> OrderMessageRepository:
        if self._message_repo is None:
            self._message_repo = OrderMessageRepository(self.platform)
        return self._message_repo

    @property
    def audit_repo(self) -> OrderAuditRepository:
        """Repositorio de auditoría (singleton)."""
        if self._audit_repo is None:
            self._audit_repo = OrderAuditRepository(self.platform)
        return self._audit_repo

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    @property
    def access_service(self) -> AccessService:
        """Servicio de acceso y allowlist (singleton)."""
        if self._access_service is None:
            self._access_service = AccessService(
                self.platform.auth,
                self.allowlist_repo,
                self._settings.access_admin_emails,
                self._settings.access_admin_password
            )
        return self._access_service

    @property
    def audit_service(self) -> AuditService:
        """Servicio de auditoría (singleton)."""
        if self._audit_service is None:
            self._audit_service = AuditService(self.audit_repo)
        return self._audit_service

    @property
    def file_service(self) -> FileService:
        """Servicio de archivos y enlaces firmados (singleton)."""
        if self._file_service is None:
            self._file_service = FileService(self.platform.storage)
        return self._file_service

    @property
    def catalog_service(self) -> CatalogService:
        """Servicio de catálogo (singleton)."""
        if self._catalog_service is None:
            self._catalog_service = CatalogService(
                self.product_repo,
                self.image_repo,
                self.file_repo,
                self.relation_repo,
                self.file_service
            )
        return self._catalog_service

    @property
    def cart_service(self) -> CartService:
        """Servicio de carrito (singleton)."""
        if self._cart_service is None:
            self._cart_service = CartService()
        return self._cart_service

    @property
    def order_service(self) -> OrderService:
        """Servicio de pedidos (singleton)."""
        if self._order_service is None:
            self._order_service = OrderService(
                self.order_repo,
                self.item_repo,
                self.message_repo,
                self.audit_repo,
                self.cart_service,
                self.audit_service,
                self.file_service
            )
        return self._order_service

    @property
    def chat_service(self) -> ChatService:
        """Servicio de chat de pedidos (singleton)."""
        if self._chat_service is None:
            self._chat_service = ChatService(self.message_repo, self.order_repo)
        return self._chat_service

    @property
    def import_service(self) -> ImportService:
        """Servicio de importación masiva (singleton)."""
        if self._import_service is None:
            self._import_service = ImportService(
                self.product_repo,
                self.image_repo,
                self.file_repo,
                self.relation_repo
            )
        return self._import_service

    # =========================================================================
    # UTILIDADES
    # =========================================================================

    def reset(self) -> None:
        """
        Reinicia todas las instancias de repositorios y servicios.
        La plataforma y la configuración se mantienen.
        """
        self._allowlist_repo: Optional[AllowlistRepository] = None
        self._product_repo: Optional[ProductRepository] = None
        self._image_repo: Optional[ProductImageRepository] = None
        self._file_repo: Optional[ProductFileRepository] = None
        self._relation_repo: Optional[ProductRelationRepository] = None
        self._order_repo: Optional[OrderRepository] = None
        self._item_repo: Optional[OrderItemRepository] = None
        self._message_repo: Optional[OrderMessageRepository] = None
        self._audit_repo: Optional[OrderAuditRepository] = None

        self._access_service: Optional[AccessService] = None
        self._audit_service: Optional[AuditService] = None
        self._file_service: Optional[FileService] = None
        self._catalog_service: Optional[CatalogService] = None
        self._cart_service: Optional[CartService] = None
        self._order_service: Optional[OrderService] = None
        self._chat_service: Optional[ChatService] = None
        self._import_service: Optional[ImportService] = None

    @classmethod
    def get_instance(cls, settings: Settings = None, platform: IPlatform = None) -> 'AppContainer':
        """
        Obtiene la instancia singleton del contenedor.

        Args:
            settings: Configuración (solo se usa en primera llamada)
            platform: Plataforma (solo se usa en primera llamada)

        Returns:
            Instancia del contenedor
        """
        if cls._instance is None:
            return cls(settings, platform)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Elimina la instancia singleton (útil para tests)."""
        if cls._instance is not None:
            cls._instance.reset()
            cls._instance = None


# Función helper para obtener el contenedor global
def get_container(settings: Settings = None, platform: IPlatform = None) -> AppContainer:
    """
    Obtiene el contenedor de dependencias global.

    Args:
        settings: Configuración de la aplicación
        platform: Plataforma ya construida (tests)

    Returns:
        Instancia del contenedor
    """
    return AppContainer.get_instance(settings, platform)
