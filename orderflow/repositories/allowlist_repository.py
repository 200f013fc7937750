# ==============================================================================
# REPOSITORIO DE ALLOWLIST
# ==============================================================================
# Encapsula todo el acceso a la tabla allowed_emails.
# Una fila por email aprobado: {"email", "role", "display_name", "created_at"}
# ==============================================================================

from typing import Any, Dict, List, Optional

from .base import TableRepository


class AllowlistRepository(TableRepository):
    """
    Repositorio de emails aprobados.

    Los emails se guardan en minúsculas; la normalización la hace
    AccessService antes de llamar aquí.
    """

    TABLE = 'allowed_emails'

    def get_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        if not email:
            return None
        return self.find_one([('email', 'eq', email)], 'email, role, display_name')

    def list_entries(self) -> List[Dict[str, Any]]:
        return self.find_all(
            order=[('created_at', False)],
            columns='email, role, display_name, created_at',
        )

    def upsert_entry(self, email: str, role: str, display_name: Optional[str]) -> Dict[str, Any]:
        rows = self.upsert_many(
            [{'email': email, 'role': role, 'display_name': display_name}],
            on_conflict=['email'],
        )
        return rows[0] if rows else {}

    def update_entry(self, email: str, patch: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self.update_where(patch, [('email', 'eq', email)])

    def delete_entry(self, email: str) -> List[Dict[str, Any]]:
        return self.delete_where([('email', 'eq', email)])
