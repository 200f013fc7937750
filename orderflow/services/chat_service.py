# ==============================================================================
# SERVICIO DE CHAT - Mensajes internos por pedido
# ==============================================================================
# Chat entre el cliente que hizo el pedido y compras.
# El cliente web consulta periódicamente con ?after=<timestamp> para traer
# solo los mensajes nuevos.
# ==============================================================================

import logging
from typing import Any, Dict, Optional

from orderflow.models import Member
from orderflow.repositories.message_repository import OrderMessageRepository
from orderflow.repositories.order_repository import OrderRepository


logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 4000


class ChatService:
    """
    Servicio de mensajes de pedidos.

    Acceso: dueño del pedido, innkjøper y admin.
    """

    def __init__(self, message_repo: OrderMessageRepository, order_repo: OrderRepository):
        self.message_repo = message_repo
        self.order_repo = order_repo

    def _can_access(self, member: Member, order_id: str) -> bool:
        order = self.order_repo.get_by_id(order_id)
        if not order:
            return False
        if member.is_purchaser():
            return True
        return bool(member.user_id) and str(order.get('created_by')) == str(member.user_id)

    def list_messages(self, member: Member, order_id: str, after: Optional[str] = None) -> Dict[str, Any]:
        """
        Mensajes del pedido en orden cronológico.

        Args:
            member: Quien consulta
            order_id: ID del pedido
            after: Timestamp ISO; solo mensajes posteriores

        Returns:
            {'ok': True, 'messages': [...]} o 404 si no hay acceso
        """
        if not self._can_access(member, order_id):
            return {'ok': False, 'error': 'Ordre ikke funnet', 'status': 404}
        after = (after or '').strip() or None
        return {'ok': True, 'messages': self.message_repo.list_for_order(order_id, after)}

    def post_message(self, member: Member, order_id: str, body: Any) -> Dict[str, Any]:
        """
        Publica un mensaje en el chat del pedido.

        El texto se recorta; vacío o de más de 4000 caracteres es un error.

        Returns:
            {'ok': True, 'message': fila guardada}
        """
        text = str(body if body is not None else '').strip()
        if not text:
            return {'ok': False, 'error': 'Meldingen er tom', 'status': 400}
        if len(text) > MAX_MESSAGE_LENGTH:
            return {
                'ok': False,
                'error': f'Meldingen er for lang (maks {MAX_MESSAGE_LENGTH} tegn)',
                'status': 400,
            }
        if not self._can_access(member, order_id):
            return {'ok': False, 'error': 'Ordre ikke funnet', 'status': 404}

        row = self.message_repo.insert({
            'order_id': order_id,
            'author_id': member.user_id,
            'author_name': member.author_name,
            'body': text,
        })
        logger.debug("Mensaje en pedido %s de %s", order_id, member.email)
        return {'ok': True, 'message': row}
