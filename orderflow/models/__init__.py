# ==============================================================================
# MODELOS DEL DOMINIO
# ==============================================================================

from .entities import (
    BUCKET_ORDER_CONFIRMATIONS,
    BUCKET_PRODUCT_FILES,
    BUCKET_PRODUCT_IMAGES,
    ORDER_STATUSES,
    CartItem,
    ImportRow,
    Member,
    OrderStatus,
    Product,
    RelationType,
    Role,
    order_total,
    status_label,
    status_tone,
)

__all__ = [
    'BUCKET_ORDER_CONFIRMATIONS',
    'BUCKET_PRODUCT_FILES',
    'BUCKET_PRODUCT_IMAGES',
    'ORDER_STATUSES',
    'CartItem',
    'ImportRow',
    'Member',
    'OrderStatus',
    'Product',
    'RelationType',
    'Role',
    'order_total',
    'status_label',
    'status_tone',
]
