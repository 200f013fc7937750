# ==============================================================================
# SERVICIO DE PEDIDOS
# ==============================================================================
# Centraliza toda la lógica de negocio de pedidos:
#
# - Checkout desde el carrito (pedido + líneas)
# - Listado y detalle con totales, estado y ETA
# - Vista de compras (filtros, orden) y actualización de estado/ETA
# - Documento de confirmación (subida y enlace firmado)
# - Borrado de pedidos (solo admin)
#
# PERMISOS:
#   kunde     → solo sus propios pedidos
#   innkjøper → todos los pedidos, puede actualizarlos
#   admin     → todo lo anterior + borrar
# ==============================================================================

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from orderflow.models import (
    BUCKET_ORDER_CONFIRMATIONS,
    ORDER_STATUSES,
    Member,
    OrderStatus,
    order_total,
    status_label,
    status_tone,
)
from orderflow.performance_logger import profile_function
from orderflow.platform import PlatformError, utc_now_iso
from orderflow.repositories.audit_repository import OrderAuditRepository
from orderflow.repositories.message_repository import OrderMessageRepository
from orderflow.repositories.order_repository import OrderItemRepository, OrderRepository
from orderflow.services.audit_service import AuditService
from orderflow.services.cart_service import CartService
from orderflow.services.file_service import CONFIRMATION_EXPIRES, FileService, order_confirmation_path


logger = logging.getLogger(__name__)

# Campos del formulario de checkout
REQUIRED_CHECKOUT_FIELDS = {
    'project_name': 'Prosjektnavn må fylles ut.',
    'contact_name': 'Kontaktperson må fylles ut.',
    'delivery_address': 'Leveringsadresse må fylles ut.',
}
OPTIONAL_CHECKOUT_FIELDS = (
    'project_no', 'contact_phone', 'contact_email',
    'delivery_postcode', 'delivery_city', 'comment',
)

# Campos que compras puede cambiar
PURCHASING_FIELDS = (
    'status', 'expected_delivery_date', 'delivery_info',
    'confirmation_file_path', 'purchaser_note',
)

SORT_KEYS = ('NEWEST', 'OLDEST', 'TOTAL_DESC', 'TOTAL_ASC')

ETA_SOON_DAYS = 7


# ==============================================================================
# HELPERS DE FECHAS / ETA
# ==============================================================================

def parse_date(value: Any) -> Optional[date]:
    """'2024-05-01' o '2024-05-01T10:00:00+00:00' → date; inválido → None."""
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


def _days_until(eta: Any, today: date = None) -> Optional[int]:
    d = parse_date(eta)
    if d is None:
        return None
    return (d - (today or date.today())).days


def is_eta_overdue(eta: Any, today: date = None) -> bool:
    """True si la fecha estimada ya pasó."""
    days = _days_until(eta, today)
    return days is not None and days < 0


def is_eta_soon(eta: Any, days: int = ETA_SOON_DAYS, today: date = None) -> bool:
    """True si la fecha estimada está entre hoy y hoy + days."""
    diff = _days_until(eta, today)
    return diff is not None and 0 <= diff <= days


def eta_counter_text(eta: Any, today: date = None) -> Optional[str]:
    """'N dager igjen', 'i dag' o 'N dager over'; None sin fecha válida."""
    diff = _days_until(eta, today)
    if diff is None:
        return None
    if diff > 0:
        return f"{diff} dager igjen"
    if diff == 0:
        return "i dag"
    return f"{abs(diff)} dager over"


def _clean(value: Any) -> Optional[str]:
    text = str(value if value is not None else '').strip()
    return text or None


def decorate_order(order: Dict[str, Any], total: float = None, today: date = None) -> Dict[str, Any]:
    """Agrega total, etiqueta/tono de estado y banderas de ETA a un pedido."""
    eta = order.get('expected_delivery_date')
    view = dict(order)
    view['total'] = total if total is not None else 0.0
    view['status_label'] = status_label(order.get('status'))
    view['status_tone'] = status_tone(order.get('status'))
    view['eta_overdue'] = is_eta_overdue(eta, today)
    view['eta_soon'] = is_eta_soon(eta, ETA_SOON_DAYS, today)
    view['eta_text'] = eta_counter_text(eta, today)
    return view


# ==============================================================================
# SERVICIO
# ==============================================================================

class OrderService:
    """
    Servicio para gestión de pedidos.

    Responsabilidades:
    - Crear pedidos desde el carrito
    - Consultar pedidos según el rol
    - Actualizar estado y datos de entrega (compras)
    - Documentos de confirmación
    - Borrar pedidos con sus dependencias
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        item_repo: OrderItemRepository,
        message_repo: OrderMessageRepository,
        audit_repo: OrderAuditRepository,
        cart_service: CartService,
        audit_service: AuditService,
        file_service: FileService
    ):
        self.order_repo = order_repo
        self.item_repo = item_repo
        self.message_repo = message_repo
        self.audit_repo = audit_repo
        self.cart_service = cart_service
        self.audit_service = audit_service
        self.file_service = file_service

    # =========================================================================
    # ACCESO
    # =========================================================================

    @staticmethod
    def can_access(member: Member, order: Dict[str, Any]) -> bool:
        """El dueño del pedido, innkjøper y admin."""
        if member.is_purchaser():
            return True
        return bool(member.user_id) and str(order.get('created_by')) == str(member.user_id)

    def get_accessible_order(self, member: Member, order_id: str) -> Optional[Dict[str, Any]]:
        """Pedido si existe y el miembro puede verlo; None en otro caso."""
        order = self.order_repo.get_by_id(order_id)
        if not order or not self.can_access(member, order):
            return None
        return order

    # =========================================================================
    # CHECKOUT
    # =========================================================================

    @profile_function(name="Crear pedido desde carrito")
    def checkout(self, member: Member, form: Dict[str, Any],
                 cart_items: List[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Crea un pedido con las líneas del carrito.

        Args:
            member: Quien hace el pedido
            form: Datos del formulario (proyecto, contacto, entrega)
            cart_items: Líneas; por defecto las del carrito de la sesión

        Returns:
            {'ok': True, 'order': {...}} o {'ok': False, 'error', 'status'}
        """
        items = cart_items if cart_items is not None else self.cart_service.get_items()
        items = [i for i in items if int(i.get('qty') or 0) > 0]
        if not items:
            return {'ok': False, 'error': 'Handlekurven er tom.', 'status': 400}

        for field_name, message in REQUIRED_CHECKOUT_FIELDS.items():
            if not _clean(form.get(field_name)):
                return {'ok': False, 'error': message, 'status': 400}

        row = {
            'created_by': member.user_id,
            'status': OrderStatus.SUBMITTED.value,
        }
        for field_name in REQUIRED_CHECKOUT_FIELDS:
            row[field_name] = _clean(form.get(field_name))
        for field_name in OPTIONAL_CHECKOUT_FIELDS:
            row[field_name] = _clean(form.get(field_name))

        try:
            order = self.order_repo.insert(row)
        except PlatformError as e:
            logger.error("Crear pedido falló: %s", e.message)
            return {'ok': False, 'error': f"Kunne ikke opprette ordre: {e.message}", 'status': 500}
        if not order.get('id'):
            return {'ok': False, 'error': 'Kunne ikke opprette ordre: ukjent feil', 'status': 500}

        lines = [{
            'order_id': order['id'],
            'product_id': i.get('product_id'),
            'product_no': i.get('product_no'),
            'name': i.get('name'),
            'unit_price': i.get('list_price'),
            'qty': int(i.get('qty') or 0),
        } for i in items]

        try:
            self.item_repo.insert_many(lines)
        except PlatformError as e:
            logger.error("Crear líneas del pedido %s falló: %s", order['id'], e.message)
            return {
                'ok': False,
                'error': f"Kunne ikke legge inn ordrelinjer: {e.message}",
                'order_id': order['id'],
                'status': 500,
            }

        self.cart_service.clear()
        total = order_total(lines)
        self.audit_service.log_order_created(member, order['id'], len(lines), total)
        logger.info("Pedido %s creado por %s (%d líneas)", order['id'], member.email, len(lines))
        return {'ok': True, 'order': decorate_order(order, total)}

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def _totals_by_order(self, order_ids: List[str]) -> Dict[str, float]:
        totals: Dict[str, float] = {}
        for item in self.item_repo.list_for_orders(order_ids):
            oid = str(item.get('order_id') or '')
            if not oid:
                continue
            totals[oid] = round(totals.get(oid, 0.0) + order_total([item]), 2)
        return totals

    def _with_totals(self, orders: List[Dict[str, Any]], today: date = None) -> List[Dict[str, Any]]:
        totals = self._totals_by_order([o['id'] for o in orders if o.get('id')])
        return [decorate_order(o, totals.get(str(o.get('id')), 0.0), today) for o in orders]

    def list_orders(self, member: Member, today: date = None) -> List[Dict[str, Any]]:
        """
        Pedidos visibles para el miembro, última actividad primero.

        kunde ve solo los suyos; innkjøper/admin ven todos.
        """
        if member.is_purchaser():
            orders = self.order_repo.list_all()
        else:
            orders = self.order_repo.list_by_creator(member.user_id) if member.user_id else []
        orders.sort(key=lambda o: str(o.get('updated_at') or o.get('created_at') or ''), reverse=True)
        return self._with_totals(orders, today)

    def get_order(self, member: Member, order_id: str, today: date = None) -> Dict[str, Any]:
        """Pedido con líneas (ordenadas por product_no); 404 si no es accesible."""
        order = self.get_accessible_order(member, order_id)
        if not order:
            return {'ok': False, 'error': 'Ordre ikke funnet', 'status': 404}
        items = self.item_repo.list_for_order(order_id)
        return {
            'ok': True,
            'order': decorate_order(order, order_total(items), today),
            'items': items,
        }

    # =========================================================================
    # COMPRAS
    # =========================================================================

    def purchasing_overview(self, filters: Dict[str, Any] = None, today: date = None) -> Dict[str, Any]:
        """
        Todos los pedidos con total, filtrados y ordenados.

        Args:
            filters: {'q', 'status' (ALL o estado), 'date_from', 'date_to', 'sort'}

        Returns:
            {'ok': True, 'orders': [...], 'count': n}
        """
        filters = filters or {}
        q = str(filters.get('q') or '').strip().lower()
        status = str(filters.get('status') or 'ALL').strip().upper()
        date_from = parse_date(filters.get('date_from'))
        date_to = parse_date(filters.get('date_to'))
        sort = str(filters.get('sort') or 'NEWEST').strip().upper()
        if sort not in SORT_KEYS:
            sort = 'NEWEST'

        orders = self._with_totals(self.order_repo.list_all(), today)

        def matches(o: Dict[str, Any]) -> bool:
            if status != 'ALL' and str(o.get('status')) != status:
                return False
            created = parse_date(o.get('created_at'))
            if created is not None:
                if date_from and created < date_from:
                    return False
                if date_to and created > date_to:
                    return False
            if q:
                hay = ' '.join(str(o.get(k) or '') for k in (
                    'id', 'project_name', 'project_no', 'contact_name',
                    'contact_email', 'delivery_city',
                )).lower()
                if q not in hay:
                    return False
            return True

        result = [o for o in orders if matches(o)]

        if sort in ('NEWEST', 'OLDEST'):
            result.sort(key=lambda o: str(o.get('created_at') or ''), reverse=(sort == 'NEWEST'))
        else:
            result.sort(key=lambda o: o.get('total') or 0.0, reverse=(sort == 'TOTAL_DESC'))

        return {'ok': True, 'orders': result, 'count': len(result)}

    def update_order(self, member: Member, order_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Actualiza estado, ETA, info de entrega, confirmación y nota de compras.

        Strings vacíos → None. Se sellan updated_at y updated_by_name; si la
        tabla no tiene updated_by_name se reintenta sin esa columna.
        """
        order = self.order_repo.get_by_id(order_id)
        if not order:
            return {'ok': False, 'error': 'Ordre ikke funnet', 'status': 404}

        patch: Dict[str, Any] = {}
        for field_name in PURCHASING_FIELDS:
            if field_name in changes:
                patch[field_name] = _clean(changes.get(field_name))

        if 'status' in patch:
            status = (patch['status'] or '').upper()
            if status not in ORDER_STATUSES:
                return {'ok': False, 'error': 'Ugyldig status', 'status': 400}
            patch['status'] = status
        if patch.get('expected_delivery_date') and not parse_date(patch['expected_delivery_date']):
            return {'ok': False, 'error': 'Ugyldig dato', 'status': 400}

        if not patch:
            return {'ok': False, 'error': 'Nothing to update', 'status': 400}

        patch['updated_at'] = utc_now_iso()
        patch['updated_by_name'] = member.author_name

        try:
            updated = self.order_repo.update_by_id(order_id, patch)
        except PlatformError as e:
            if not (e.looks_like_missing_column('updated_by_name') or e.looks_like_missing_column('updated_at')):
                raise
            logger.warning("orders sin updated_by_name; reintentando sin la columna")
            patch.pop('updated_by_name', None)
            updated = self.order_repo.update_by_id(order_id, patch)

        self.audit_service.log_order_updated(member, order_id, order, patch)
        return {'ok': True, 'order': decorate_order(updated or {**order, **patch})}

    def upload_confirmation(self, member: Member, order_id: str, file_name: str,
                            data: bytes, content_type: str = None) -> Dict[str, Any]:
        """Sube la confirmación del proveedor y la enlaza al pedido."""
        if not data:
            return {'ok': False, 'error': 'Velg en fil først.', 'status': 400}
        order = self.order_repo.get_by_id(order_id)
        if not order:
            return {'ok': False, 'error': 'Ordre ikke funnet', 'status': 404}

        path = order_confirmation_path(order_id, file_name)
        self.file_service.upload(BUCKET_ORDER_CONFIRMATIONS, path, data,
                                 content_type or 'application/pdf', upsert=True)
        result = self.update_order(member, order_id, {'confirmation_file_path': path})
        if result.get('ok'):
            self.audit_service.log_confirmation_uploaded(member, order_id, path)
            result['path'] = path
        return result

    def confirmation_url(self, member: Member, order_id: str) -> Dict[str, Any]:
        """
        Enlace firmado (10 minutos) a la confirmación del pedido.

        404 sin pedido o sin confirmación, 403 si no es el dueño ni compras.
        """
        order = self.order_repo.get_by_id(order_id)
        if not order or not order.get('confirmation_file_path'):
            return {'ok': False, 'error': 'Not found', 'status': 404}
        if not self.can_access(member, order):
            return {'ok': False, 'error': 'Forbidden', 'status': 403}

        try:
            url = self.file_service.signed_url(
                BUCKET_ORDER_CONFIRMATIONS, order['confirmation_file_path'], CONFIRMATION_EXPIRES
            )
        except PlatformError as e:
            logger.error("No se pudo firmar la confirmación de %s: %s", order_id, e.message)
            return {'ok': False, 'error': 'Could not sign', 'status': 500}
        return {'ok': True, 'url': url}

    # =========================================================================
    # BORRADO (admin)
    # =========================================================================

    def delete_order(self, order_id: str) -> Dict[str, Any]:
        """
        Borra un pedido en orden hijo → padre.

        Líneas, mensajes y auditoría primero; después el pedido. Un fallo
        devuelve 500 con el mensaje de la plataforma y detiene el borrado.
        """
        if not order_id:
            return {'ok': False, 'error': 'Missing id', 'status': 400}

        steps = (
            self.item_repo.delete_for_order,
            self.message_repo.delete_for_order,
            self.audit_repo.delete_for_order,
            self.order_repo.delete_by_id,
        )
        for step in steps:
            try:
                step(order_id)
            except PlatformError as e:
                logger.error("Borrado del pedido %s falló: %s", order_id, e.message)
                return {'ok': False, 'error': e.message, 'status': 500}

        logger.info("Pedido %s eliminado", order_id)
        return {'ok': True}
