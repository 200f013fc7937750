# ==============================================================================
# CONFIGURACIÓN - Variables de entorno
# ==============================================================================
# Toda la configuración se lee del entorno (con soporte para archivo .env).
# Si PLATFORM_URL está vacío se usa la plataforma LOCAL (archivos JSON en
# disco), útil para desarrollo y tests.
#
# VARIABLES:
#   PLATFORM_URL            → URL base de la plataforma externa
#   PLATFORM_ANON_KEY       → Clave pública (verificación de tokens)
#   PLATFORM_SERVICE_KEY    → Clave de servicio (operaciones privilegiadas)
#   PLATFORM_TIMEOUT        → Timeout HTTP en segundos (default 10)
#   ORDERFLOW_SECRET_KEY    → Clave de sesión Flask
#   ACCESS_ADMIN_EMAILS     → Emails con acceso al panel de allowlist (coma)
#   ACCESS_ADMIN_PASSWORD   → Contraseña extra del panel de allowlist
#   FILE_STORAGE_ROOT       → Raíz de archivos locales
#   ORDERFLOW_DATA_DIR      → Carpeta de tablas JSON (plataforma local)
#   ENABLE_PROFILING        → 1/0, logs de rendimiento de rutas
#   LOG_LEVEL               → DEBUG, INFO, WARNING...
# ==============================================================================

import logging
import os
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from dotenv import load_dotenv


_DEFAULT_SECRET = "orderflow_dev_secret_key_change_in_production"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "ja", "on")


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


def parse_email_set(raw: Optional[str]) -> FrozenSet[str]:
    """Convierte "a@x.no, B@x.no" en {'a@x.no', 'b@x.no'}."""
    return frozenset(
        part.strip().lower()
        for part in (raw or "").split(",")
        if part.strip()
    )


@dataclass
class Settings:
    """
    Configuración de la aplicación.

    Se construye desde el entorno con Settings.from_env(); los tests la
    construyen directamente con los valores que necesitan.
    """
    platform_url: str = ""
    platform_anon_key: str = ""
    platform_service_key: str = ""
    platform_timeout: int = 10

    secret_key: str = _DEFAULT_SECRET
    production_mode: bool = False

    access_admin_emails: FrozenSet[str] = field(default_factory=frozenset)
    access_admin_password: str = ""

    data_dir: str = ""
    file_storage_root: str = ""

    enable_profiling: bool = True
    logs_dir: str = ""
    log_level: str = "INFO"

    @property
    def uses_local_platform(self) -> bool:
        """True si no hay plataforma externa configurada."""
        return not self.platform_url

    @classmethod
    def from_env(cls, base_path: str = None) -> "Settings":
        """
        Lee la configuración del entorno (y de .env si existe).

        Args:
            base_path: Carpeta base para los defaults de datos y logs

        Returns:
            Instancia de Settings
        """
        load_dotenv()

        base_path = base_path or os.getcwd()
        production = _env_bool("ORDERFLOW_PRODUCTION", False)
        secret = os.environ.get("ORDERFLOW_SECRET_KEY")

        if production and not secret:
            print("[ADVERTENCIA] ORDERFLOW_PRODUCTION activo sin ORDERFLOW_SECRET_KEY definida")
            print("[ADVERTENCIA] Define la variable de entorno para mayor seguridad")

        return cls(
            platform_url=(os.environ.get("PLATFORM_URL") or "").rstrip("/"),
            platform_anon_key=os.environ.get("PLATFORM_ANON_KEY", ""),
            platform_service_key=os.environ.get("PLATFORM_SERVICE_KEY", ""),
            platform_timeout=_env_int("PLATFORM_TIMEOUT", 10),
            secret_key=secret or _DEFAULT_SECRET,
            production_mode=production,
            access_admin_emails=parse_email_set(os.environ.get("ACCESS_ADMIN_EMAILS")),
            access_admin_password=os.environ.get("ACCESS_ADMIN_PASSWORD", ""),
            data_dir=os.environ.get("ORDERFLOW_DATA_DIR") or os.path.join(base_path, "data"),
            file_storage_root=os.environ.get("FILE_STORAGE_ROOT") or os.path.join(base_path, "files"),
            enable_profiling=_env_bool("ENABLE_PROFILING", True),
            logs_dir=os.environ.get("ORDERFLOW_LOGS_DIR") or os.path.join(base_path, "logs"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
        )


def configure_logging(level: str = "INFO") -> None:
    """Configura el logging raíz de la aplicación (una sola vez)."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
