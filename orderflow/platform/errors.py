# ==============================================================================
# ERRORES DE PLATAFORMA
# ==============================================================================

from typing import Any, Optional


class PlatformError(Exception):
    """Excepción lanzada cuando una llamada a la plataforma falla."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)

    def looks_like_missing_column(self, column: str) -> bool:
        """True si el error indica que la columna no existe en la tabla."""
        text = f"{self.message} {self.details or ''}".lower()
        return "does not exist" in text and column.lower() in text


class AuthError(PlatformError):
    """Token inválido, expirado o intercambio de código fallido."""
    pass
