# ==============================================================================
# SERVICIO DE ARCHIVOS - Enlaces firmados y paths de storage
# ==============================================================================
# Los buckets son privados: el navegador solo recibe enlaces firmados de vida
# corta. Este servicio:
#
# - Valida bucket y duración de los enlaces pedidos por el cliente
# - Mantiene una caché en memoria de enlaces todavía vigentes
# - Construye los paths de subida (products/<id>/..., orders/<id>/...)
# ==============================================================================

import logging
import os
import threading
import time
from typing import Any, Dict, Iterable, Optional, Tuple

from orderflow.models import BUCKET_PRODUCT_FILES, BUCKET_PRODUCT_IMAGES
from orderflow.platform import IStorage, PlatformError


logger = logging.getLogger(__name__)

# Buckets que el cliente puede pedir firmar por /api/files/signed-url
SIGNABLE_BUCKETS = frozenset([BUCKET_PRODUCT_IMAGES, BUCKET_PRODUCT_FILES])

DEFAULT_EXPIRES = 600
MIN_EXPIRES = 60
MAX_EXPIRES = 60 * 60

CONFIRMATION_EXPIRES = 60 * 10


def clamp_expires(raw: Any) -> int:
    """Duración en segundos entre 60 y 3600; valores inválidos → 600."""
    try:
        value = int(float(raw))
    except (TypeError, ValueError):
        value = 0
    if value <= 0:
        value = DEFAULT_EXPIRES
    return max(MIN_EXPIRES, min(MAX_EXPIRES, value))


# ==============================================================================
# PATHS DE STORAGE
# ==============================================================================

def _now_ms() -> int:
    return int(time.time() * 1000)


def safe_file_name(file_name: str) -> str:
    """Nombre base sin directorios y con espacios → '_'."""
    base = os.path.basename(str(file_name or '').replace('\\', '/')) or 'file'
    return base.replace(' ', '_')


def product_image_path(product_id: str, file_name: str, now_ms: int = None) -> str:
    return f"products/{product_id}/images/{now_ms or _now_ms()}_{safe_file_name(file_name)}"


def product_thumb_path(product_id: str, file_name: str, now_ms: int = None) -> str:
    return f"products/{product_id}/thumb/{now_ms or _now_ms()}_{safe_file_name(file_name)}"


def product_file_path(product_id: str, file_name: str, now_ms: int = None) -> str:
    return f"products/{product_id}/files/{now_ms or _now_ms()}_{safe_file_name(file_name)}"


def order_confirmation_path(order_id: str, file_name: str, now_ms: int = None) -> str:
    return f"orders/{order_id}/{now_ms or _now_ms()}_{safe_file_name(file_name)}"


# ==============================================================================
# CACHÉ DE ENLACES FIRMADOS
# ==============================================================================

class SignedUrlCache:
    """
    Caché en memoria de enlaces firmados.

    Clave: (bucket, path, download, expires_in). Un enlace se reutiliza
    mientras le quede al menos el margen de seguridad de su vida útil
    (20%, mínimo 30 s). Cada set() purga las entradas ya vencidas.

    Thread-safe con un RLock, como el resto de cachés del proyecto.
    """

    MIN_MARGIN_SECONDS = 30
    MARGIN_RATIO = 0.2

    def __init__(self, clock=time.monotonic):
        self._entries: Dict[Tuple[str, str, bool, int], Tuple[str, float]] = {}
        self._lock = threading.RLock()
        self._clock = clock

    @staticmethod
    def _key(bucket: str, path: str, download: bool, expires_in: int) -> Tuple[str, str, bool, int]:
        return (bucket, path, bool(download), int(expires_in))

    def _margin(self, expires_in: int) -> float:
        return max(self.MIN_MARGIN_SECONDS, expires_in * self.MARGIN_RATIO)

    def get(self, bucket: str, path: str, download: bool, expires_in: int) -> Optional[str]:
        """Enlace vigente o None. Los enlaces por vencer se descartan."""
        key = self._key(bucket, path, download, expires_in)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            url, expires_at = entry
            if expires_at - self._clock() < self._margin(expires_in):
                del self._entries[key]
                return None
            return url

    def set(self, bucket: str, path: str, download: bool, url: str, expires_in: int) -> None:
        with self._lock:
            now = self._clock()
            self.purge_expired(now)
            self._entries[self._key(bucket, path, download, expires_in)] = (url, now + expires_in)

    def purge_expired(self, now: Optional[float] = None) -> int:
        """Elimina las entradas vencidas; devuelve cuántas se quitaron."""
        with self._lock:
            now = self._clock() if now is None else now
            expired = [k for k, (_, expires_at) in self._entries.items() if expires_at <= now]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def invalidate(self, bucket: str, path: str) -> None:
        with self._lock:
            for key in [k for k in self._entries if k[0] == bucket and k[1] == path]:
                del self._entries[key]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# ==============================================================================
# SERVICIO
# ==============================================================================

class FileService:
    """
    Servicio de enlaces firmados y subidas.

    Responsabilidades:
    - Firmar objetos de buckets permitidos (con caché)
    - Firmar varios paths de una vez (miniaturas, galería, documentos)
    - Subir y borrar objetos, invalidando la caché
    """

    def __init__(self, storage: IStorage, cache: SignedUrlCache = None):
        """
        Args:
            storage: Storage de la plataforma
            cache: Caché de enlaces (se crea una si no se pasa)
        """
        self.storage = storage
        self.cache = cache or SignedUrlCache()

    def signed_url(self, bucket: str, path: str, expires_in: int = DEFAULT_EXPIRES,
                   download: bool = False) -> str:
        """
        Enlace firmado para un objeto (reutiliza la caché si sigue vigente).

        Raises:
            PlatformError: Si la plataforma no puede firmar
        """
        cached = self.cache.get(bucket, path, download, expires_in)
        if cached:
            return cached
        url = self.storage.create_signed_url(bucket, path, expires_in, download)
        self.cache.set(bucket, path, download, url, expires_in)
        return url

    def signed_url_for_client(self, bucket: str, path: str, expires: Any = None,
                              download: bool = False) -> Dict[str, Any]:
        """
        Firma pedida por el navegador (/api/files/signed-url).

        Returns:
            {'ok': True, 'url', 'expires_in'} o {'ok': False, 'error', 'status'}
        """
        bucket = (bucket or '').strip()
        path = (path or '').strip()
        if not bucket:
            return {'ok': False, 'error': 'Missing bucket', 'status': 400}
        if bucket not in SIGNABLE_BUCKETS:
            return {'ok': False, 'error': f'Invalid bucket: {bucket}', 'status': 400}
        if not path:
            return {'ok': False, 'error': 'Missing path', 'status': 400}

        expires_in = clamp_expires(expires if expires not in (None, '') else DEFAULT_EXPIRES)
        try:
            url = self.signed_url(bucket, path, expires_in, download)
        except PlatformError as e:
            logger.warning("No se pudo firmar %s/%s: %s", bucket, path, e.message)
            return {'ok': False, 'error': 'Could not sign', 'details': e.message, 'status': 500}
        return {'ok': True, 'url': url, 'expires_in': expires_in}

    def signed_urls(self, bucket: str, paths: Iterable[Optional[str]],
                    expires_in: int = DEFAULT_EXPIRES, download: bool = False) -> Dict[str, str]:
        """
        Firma varios paths (sin duplicados).

        Los fallos individuales se registran en el log y se omiten.

        Returns:
            {path: url}
        """
        result = {}
        for path in dict.fromkeys(p for p in paths if p):
            try:
                result[path] = self.signed_url(bucket, path, expires_in, download)
            except PlatformError as e:
                logger.warning("signed-url falló para %s/%s: %s", bucket, path, e.message)
        return result

    def upload(self, bucket: str, path: str, data: bytes, content_type: str = None,
               upsert: bool = False) -> str:
        stored = self.storage.upload(bucket, path, data, content_type, upsert)
        self.cache.invalidate(bucket, path)
        return stored

    def remove(self, bucket: str, path: str) -> None:
        self.storage.remove(bucket, [path])
        self.cache.invalidate(bucket, path)
