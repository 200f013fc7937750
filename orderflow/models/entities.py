# ==============================================================================
# ENTIDADES DEL DOMINIO - Definiciones de dataclasses
# ==============================================================================
# Cada entidad representa un concepto del negocio.
# Las filas viven en la plataforma como dicts; estas clases las describen y
# concentran las reglas pequeñas (roles, estados, totales).
# ==============================================================================

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any
from enum import Enum


# ==============================================================================
# ENUMERACIONES - Estados y tipos válidos
# ==============================================================================

class Role(str, Enum):
    """Roles de la allowlist."""
    KUNDE = "kunde"            # Cliente: ve y crea sus pedidos
    INNKJOPER = "innkjøper"    # Compras: gestiona todos los pedidos
    ADMIN = "admin"            # Todo lo anterior + productos y borrado


class OrderStatus(str, Enum):
    """Estados de un pedido, en orden de ciclo de vida."""
    SUBMITTED = "SUBMITTED"
    IN_REVIEW = "IN_REVIEW"
    ORDERED = "ORDERED"
    CONFIRMED = "CONFIRMED"
    SHIPPING = "SHIPPING"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class RelationType(str, Enum):
    """Tipos de relación entre productos."""
    ACCESSORY = "ACCESSORY"
    SPARE_PART = "SPARE_PART"


ORDER_STATUSES = tuple(s.value for s in OrderStatus)

STATUS_LABELS = {
    OrderStatus.SUBMITTED.value: "Submitted",
    OrderStatus.IN_REVIEW.value: "In review",
    OrderStatus.ORDERED.value: "Ordered",
    OrderStatus.CONFIRMED.value: "Confirmed",
    OrderStatus.SHIPPING.value: "Shipping",
    OrderStatus.DELIVERED.value: "Delivered",
    OrderStatus.CANCELLED.value: "Cancelled",
}

STATUS_TONES = {
    OrderStatus.DELIVERED.value: "green",
    OrderStatus.CONFIRMED.value: "green",
    OrderStatus.SUBMITTED.value: "yellow",
    OrderStatus.IN_REVIEW.value: "yellow",
    OrderStatus.ORDERED.value: "yellow",
    OrderStatus.SHIPPING.value: "yellow",
    OrderStatus.CANCELLED.value: "red",
}

# Buckets de storage
BUCKET_PRODUCT_IMAGES = "product-images"
BUCKET_PRODUCT_FILES = "product-files"
BUCKET_ORDER_CONFIRMATIONS = "order-confirmations"


def status_label(status: Optional[str]) -> str:
    """Etiqueta legible; estados desconocidos se muestran como SUBMITTED."""
    key = str(status or "").strip().upper()
    return STATUS_LABELS.get(key, STATUS_LABELS[OrderStatus.SUBMITTED.value])


def status_tone(status: Optional[str]) -> str:
    """Color del badge: green, yellow, red o neutral."""
    return STATUS_TONES.get(str(status or "").strip().upper(), "neutral")


# ==============================================================================
# MIEMBROS (allowlist)
# ==============================================================================

@dataclass
class Member:
    """
    Usuario autenticado y presente en la allowlist.

    Attributes:
        user_id: ID del usuario en la plataforma de auth
        email: Email normalizado (minúsculas)
        role: Rol de la allowlist
        display_name: Nombre visible (opcional)
    """
    user_id: Optional[str]
    email: str
    role: Role = Role.KUNDE
    display_name: Optional[str] = None

    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def is_purchaser(self) -> bool:
        """Admin puede hacer todo lo que hace innkjøper."""
        return self.role in (Role.INNKJOPER, Role.ADMIN)

    def has_role(self, *roles: Role) -> bool:
        if self.role in roles:
            return True
        return self.role == Role.ADMIN and Role.INNKJOPER in roles

    @property
    def author_name(self) -> str:
        """Nombre para chat y auditoría: display name o email."""
        return (self.display_name or "").strip() or self.email

    def to_dict(self) -> Dict[str, Any]:
        return {
            'email': self.email,
            'role': self.role.value,
            'display_name': self.display_name,
        }


# ==============================================================================
# CATÁLOGO
# ==============================================================================

@dataclass
class Product:
    """
    Producto del catálogo.

    Attributes:
        id: ID de la plataforma
        product_no: Número de producto (único)
        name: Nombre (opcional)
        list_price: Precio de lista (opcional)
        is_active: Visible para clientes
        thumb_path: Path de la miniatura en el bucket de imágenes
    """
    id: str
    product_no: str
    name: Optional[str] = None
    list_price: Optional[float] = None
    is_active: bool = True
    thumb_path: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Product':
        price = data.get('list_price')
        try:
            price = float(price) if price is not None else None
        except (TypeError, ValueError):
            price = None
        return cls(
            id=str(data.get('id')),
            product_no=str(data.get('product_no') or ''),
            name=data.get('name'),
            list_price=price,
            is_active=data.get('is_active') is not False,
            thumb_path=data.get('thumb_path'),
            description=data.get('description'),
        )


# ==============================================================================
# CARRITO Y PEDIDOS
# ==============================================================================

@dataclass
class CartItem:
    """Línea del carrito (guardada en la sesión)."""
    product_id: str
    product_no: str
    name: str
    list_price: float = 0.0
    qty: int = 1

    @property
    def line_total(self) -> float:
        return round(self.qty * (self.list_price or 0), 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product_id': self.product_id,
            'product_no': self.product_no,
            'name': self.name,
            'list_price': self.list_price,
            'qty': self.qty,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CartItem':
        try:
            price = float(data.get('list_price') or 0)
        except (TypeError, ValueError):
            price = 0.0
        try:
            qty = int(data.get('qty') or 0)
        except (TypeError, ValueError):
            qty = 0
        return cls(
            product_id=str(data.get('product_id') or ''),
            product_no=str(data.get('product_no') or ''),
            name=str(data.get('name') or ''),
            list_price=price,
            qty=qty,
        )


def order_total(items: List[Dict[str, Any]]) -> float:
    """Suma qty * unit_price de las líneas de un pedido."""
    total = 0.0
    for item in items:
        try:
            total += float(item.get('qty') or 0) * float(item.get('unit_price') or 0)
        except (TypeError, ValueError):
            continue
    return round(total, 2)


# ==============================================================================
# IMPORTACIÓN
# ==============================================================================

@dataclass
class ImportRow:
    """
    Fila normalizada del import masivo.

    Las columnas de lista (documents, gallery_images, accessories,
    spare_parts) se guardan como texto separado por comas.
    """
    product_no: str
    name: Optional[str] = None
    list_price: Optional[float] = None
    is_active: bool = True
    thumb_path: Optional[str] = None
    documents: Optional[str] = None
    gallery_images: Optional[str] = None
    accessories: Optional[str] = None
    spare_parts: Optional[str] = None
    row_number: Optional[int] = field(default=None, compare=False)

    LIST_COLUMNS = ('documents', 'gallery_images', 'accessories', 'spare_parts')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product_no': self.product_no,
            'name': self.name,
            'list_price': self.list_price,
            'is_active': self.is_active,
            'thumb_path': self.thumb_path,
            'documents': self.documents,
            'gallery_images': self.gallery_images,
            'accessories': self.accessories,
            'spare_parts': self.spare_parts,
        }
