# ==============================================================================
# CAPA DE PLATAFORMA - Acceso a la plataforma externa (BaaS)
# ==============================================================================
# ├── interfaces.py → Contratos (IPlatform, ITable, IAuth, IStorage)
# ├── errors.py     → PlatformError, AuthError
# ├── rest.py       → RestPlatform (HTTP, producción)
# └── local.py      → LocalPlatform (JSON en disco, desarrollo y tests)
# ==============================================================================

from .errors import AuthError, PlatformError
from .interfaces import IAuth, IPlatform, IStorage, ITable
from .local import LocalPlatform, utc_now_iso
from .rest import RestPlatform


def create_platform(settings):
    """
    Crea la plataforma según la configuración.

    Args:
        settings: orderflow.config.Settings

    Returns:
        RestPlatform si PLATFORM_URL está definido, si no LocalPlatform
    """
    if settings.uses_local_platform:
        return LocalPlatform(settings.data_dir, settings.file_storage_root, settings.secret_key)
    return RestPlatform(
        settings.platform_url,
        settings.platform_anon_key,
        settings.platform_service_key,
        settings.platform_timeout,
    )


__all__ = [
    'AuthError',
    'PlatformError',
    'IAuth',
    'IPlatform',
    'IStorage',
    'ITable',
    'LocalPlatform',
    'RestPlatform',
    'create_platform',
    'utc_now_iso',
]
