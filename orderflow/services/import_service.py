# ==============================================================================
# SERVICIO DE IMPORTACIÓN MASIVA DE PRODUCTOS
# ==============================================================================
# Importa productos desde una hoja de cálculo (.xlsx / .csv) o desde filas
# JSON ya parseadas.
#
# FLUJO:
#   1. Leer filas (primera hoja, cabecera en la fila 1)
#   2. Validar (errores por fila, advertencias globales)
#   3. Normalizar celdas y deduplicar por product_no (gana la última)
#   4. Upsert de productos → documentos → galería → relaciones
#
# Todas las escrituras son upserts sobre claves únicas: repetir la misma
# importación no crea duplicados.
# ==============================================================================

import csv
import io
import logging
import math
import os
import re
from typing import Any, Dict, List, Optional, Tuple

from openpyxl import load_workbook

from orderflow.models import BUCKET_PRODUCT_IMAGES, ImportRow, RelationType
from orderflow.performance_logger import profile_function
from orderflow.repositories.product_repository import (
    ProductFileRepository,
    ProductImageRepository,
    ProductRelationRepository,
    ProductRepository,
)


logger = logging.getLogger(__name__)

IMPORT_COLUMNS = (
    'product_no', 'name', 'list_price', 'is_active', 'thumb_path',
    'documents', 'gallery_images', 'accessories', 'spare_parts',
)

_LIST_SPLIT_RE = re.compile(r'[;,\n\r]+')

_TRUE_VALUES = ('1', 'true', 'ja', 'yes', 'y')
_FALSE_VALUES = ('0', 'false', 'nei', 'no', 'n')


class ImportFileError(Exception):
    """Archivo de importación ilegible o con formato no soportado."""
    pass


# ==============================================================================
# NORMALIZACIÓN DE CELDAS
# ==============================================================================

def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def to_number(value: Any) -> Optional[float]:
    """Número desde celda ("12,5" → 12.5); vacío o inválido → None."""
    if _is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).replace(',', '.', 1).strip())
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def to_bool(value: Any) -> Optional[bool]:
    """1/true/ja/yes/y → True, 0/false/nei/no/n → False, otro → None."""
    if _is_blank(value):
        return None
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    return None


def normalize_text_cell(value: Any) -> Optional[str]:
    text = str(value if value is not None else '').strip()
    return text or None


def normalize_list_cell(value: Any) -> Optional[str]:
    """Lista separada por ; , o saltos de línea → 'a,b,c' (None si queda vacía)."""
    text = str(value if value is not None else '').strip()
    if not text:
        return None
    parts = [p.strip() for p in _LIST_SPLIT_RE.split(text) if p.strip()]
    return ','.join(parts) if parts else None


def split_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [p.strip() for p in _LIST_SPLIT_RE.split(str(value)) if p.strip()]


def basename(path: str) -> str:
    text = str(path or '').strip()
    return text.split('/')[-1] or text


# ==============================================================================
# LECTURA DE ARCHIVOS
# ==============================================================================

def _cell_key(header: Any) -> str:
    return str(header if header is not None else '').strip().lower()


def read_xlsx(data: bytes) -> List[Dict[str, Any]]:
    """Filas de la primera hoja; la fila 1 es la cabecera."""
    try:
        workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except Exception as e:
        raise ImportFileError(f"Kunne ikke lese Excel-filen: {e}") from e

    try:
        sheet = workbook.worksheets[0]
        rows = sheet.iter_rows(values_only=True)
        header = next(rows, None)
        if not header:
            return []
        keys = [_cell_key(h) for h in header]
        result = []
        for values in rows:
            if values is None or all(_is_blank(v) for v in values):
                continue
            result.append({k: v for k, v in zip(keys, values) if k})
        return result
    finally:
        workbook.close()


def read_csv(data: bytes) -> List[Dict[str, Any]]:
    """CSV con cabecera; separador ',' o ';' detectado."""
    text = data.decode('utf-8-sig', errors='replace')
    sample = text[:4096]
    try:
        dialect = csv.Sniffer().sniff(sample, delimiters=',;\t')
    except csv.Error:
        dialect = csv.excel
    reader = csv.DictReader(io.StringIO(text), dialect=dialect)
    result = []
    for raw in reader:
        row = {_cell_key(k): v for k, v in raw.items() if k is not None}
        if all(_is_blank(v) for v in row.values()):
            continue
        result.append(row)
    return result


def parse_file(file_name: str, data: bytes) -> List[Dict[str, Any]]:
    """
    Lee un archivo de importación según su extensión.

    Raises:
        ImportFileError: Si la extensión no es .xlsx/.xlsm/.csv o no se puede leer
    """
    ext = os.path.splitext(file_name or '')[1].lower()
    if ext in ('.xlsx', '.xlsm'):
        return read_xlsx(data)
    if ext == '.csv':
        return read_csv(data)
    raise ImportFileError("Ukjent filformat. Bruk .xlsx eller .csv.")


# ==============================================================================
# VALIDACIÓN / NORMALIZACIÓN
# ==============================================================================

def _only_separators(value: Any) -> bool:
    text = str(value if value is not None else '').strip()
    return bool(text) and not _LIST_SPLIT_RE.sub('', text).strip()


def validate(raw_rows: List[Dict[str, Any]]) -> Tuple[List[str], List[str]]:
    """
    Valida las filas tal como vienen del archivo.

    Los números de fila empiezan en 2 (la fila 1 es la cabecera).

    Returns:
        (errores, advertencias)
    """
    errors: List[str] = []
    warnings: List[str] = []

    for index, row in enumerate(raw_rows):
        row_no = index + 2
        if not normalize_text_cell(row.get('product_no')):
            errors.append(f"Rad {row_no}: product_no mangler.")

        price = row.get('list_price')
        if not _is_blank(price) and to_number(price) is None:
            errors.append(f"Rad {row_no}: list_price er ugyldig.")

        for column in ImportRow.LIST_COLUMNS:
            if _only_separators(row.get(column)):
                errors.append(f"Rad {row_no}: {column} ser ut til å være tom liste (kun separatorer).")

        thumb = str(row.get('thumb_path') or '').strip()
        if thumb.startswith('http://') or thumb.startswith('https://'):
            errors.append(
                f"Rad {row_no}: thumb_path ser ut til å være URL. Bruk storage path (f.eks. products/...)."
            )

    has_media = any(
        normalize_text_cell(r.get(c)) for r in raw_rows
        for c in ('thumb_path', 'documents', 'gallery_images')
    )
    if raw_rows and not has_media:
        warnings.append(
            "Merk: Ingen rader inneholder thumb_path/documents/gallery_images. "
            "Hvis dette er forventet, ignorer. Hvis ikke: sjekk kolonnenavnene."
        )

    return errors, warnings


def normalize_row(raw: Dict[str, Any], row_number: int = None) -> ImportRow:
    active = to_bool(raw.get('is_active'))
    return ImportRow(
        product_no=normalize_text_cell(raw.get('product_no')) or '',
        name=normalize_text_cell(raw.get('name')),
        list_price=to_number(raw.get('list_price')),
        is_active=True if active is None else active,
        thumb_path=normalize_text_cell(raw.get('thumb_path')),
        documents=normalize_list_cell(raw.get('documents')),
        gallery_images=normalize_list_cell(raw.get('gallery_images')),
        accessories=normalize_list_cell(raw.get('accessories')),
        spare_parts=normalize_list_cell(raw.get('spare_parts')),
        row_number=row_number,
    )


def normalize_rows(raw_rows: List[Dict[str, Any]]) -> List[ImportRow]:
    return [normalize_row(r, i + 2) for i, r in enumerate(raw_rows)]


def dedupe(rows: List[ImportRow]) -> Tuple[List[ImportRow], List[str]]:
    """
    Deduplica por product_no sin distinguir mayúsculas; gana la última fila.

    Las filas sin product_no se descartan.

    Returns:
        (filas únicas, claves duplicadas en mayúsculas)
    """
    by_no: Dict[str, ImportRow] = {}
    counts: Dict[str, int] = {}
    for row in rows:
        product_no = (row.product_no or '').strip()
        if not product_no:
            continue
        key = product_no.upper()
        counts[key] = counts.get(key, 0) + 1
        row.product_no = product_no
        # Reinsertar para que el orden siga la última aparición
        by_no.pop(key, None)
        by_no[key] = row
    return list(by_no.values()), [k for k, c in counts.items() if c > 1]


# ==============================================================================
# SERVICIO
# ==============================================================================

class ImportService:
    """
    Servicio de importación masiva de productos.

    Responsabilidades:
    - Vista previa (filas, errores, advertencias) sin escribir
    - Importación idempotente de productos, medios y relaciones
    """

    def __init__(
        self,
        product_repo: ProductRepository,
        image_repo: ProductImageRepository,
        file_repo: ProductFileRepository,
        relation_repo: ProductRelationRepository
    ):
        self.product_repo = product_repo
        self.image_repo = image_repo
        self.file_repo = file_repo
        self.relation_repo = relation_repo

    def preview(self, raw_rows: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Valida y normaliza sin escribir nada.

        Returns:
            {'ok', 'rows', 'errors', 'warnings', 'duplicates'}
        """
        errors, warnings = validate(raw_rows)
        rows, dup_keys = dedupe(normalize_rows(raw_rows))
        if dup_keys:
            warnings.append(
                f"Merk: Filen inneholder duplikate product_no ({len(dup_keys)} stk). "
                f"Siste forekomst ble brukt (overskriver tidligere i filen)."
            )
        return {
            'ok': True,
            'rows': [r.to_dict() for r in rows],
            'errors': errors,
            'warnings': warnings,
            'duplicates': dup_keys,
        }

    @profile_function(name="Importación masiva de productos")
    def run_import(self, raw_rows: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Importa las filas.

        Se niega si hay errores de validación. Un fallo de la plataforma en
        cualquier paso se propaga como PlatformError.

        Returns:
            {'ok', 'rows_in', 'rows_deduped', 'products_upserted',
             'files_upserted', 'images_upserted', 'relations_upserted'}
        """
        if not raw_rows:
            return {'ok': False, 'error': 'Ingen rader å importere.', 'status': 400}

        errors, _ = validate(raw_rows)
        if errors:
            return {
                'ok': False,
                'error': 'Rett feilene før import.',
                'details': errors,
                'status': 400,
            }

        rows, _ = dedupe(normalize_rows(raw_rows))

        # 1) Productos
        products = []
        for row in rows:
            product = {
                'product_no': row.product_no,
                'name': row.name,
                'list_price': row.list_price,
                'is_active': row.is_active,
            }
            if row.thumb_path:
                product['thumb_path'] = row.thumb_path
            products.append(product)

        upserted = self.product_repo.upsert_by_product_no(products)
        id_by_no = self._id_map(upserted)

        # 2) Referencias a productos fuera de la importación
        referenced = set()
        for row in rows:
            for no in split_list(row.accessories) + split_list(row.spare_parts):
                referenced.add(no.upper())
        missing = sorted(no for no in referenced if no not in id_by_no)
        if missing:
            # product_no se guarda tal cual; se buscan las variantes tal como aparecen
            originals = sorted({
                no for row in rows
                for no in split_list(row.accessories) + split_list(row.spare_parts)
                if no.upper() in missing
            })
            id_by_no.update(self._id_map(self.product_repo.get_by_product_nos(originals)))

        # 3) Documentos
        files = []
        for row in rows:
            product_id = id_by_no.get(row.product_no.upper())
            if not product_id:
                continue
            for path in split_list(row.documents):
                files.append({
                    'product_id': product_id,
                    'relative_path': path,
                    'file_type': 'dok',
                    'title': basename(path) or None,
                })
        if files:
            self.file_repo.upsert_files(files)

        # 4) Galería
        images = []
        for row in rows:
            product_id = id_by_no.get(row.product_no.upper())
            if not product_id:
                continue
            for sort, path in enumerate(split_list(row.gallery_images), start=1):
                images.append({
                    'product_id': product_id,
                    'storage_bucket': BUCKET_PRODUCT_IMAGES,
                    'storage_path': path,
                    'caption': None,
                    'sort_order': sort,
                })
        if images:
            self.image_repo.upsert_images(images)

        # 5) Relaciones
        relations = []
        for row in rows:
            product_id = id_by_no.get(row.product_no.upper())
            if not product_id:
                continue
            for relation_type, cell in ((RelationType.ACCESSORY, row.accessories),
                                        (RelationType.SPARE_PART, row.spare_parts)):
                sort = 0
                for no in split_list(cell):
                    related_id = id_by_no.get(no.upper())
                    if not related_id or related_id == product_id:
                        continue
                    sort += 1
                    relations.append({
                        'product_id': product_id,
                        'related_product_id': related_id,
                        'relation_type': relation_type.value,
                        'sort_order': sort,
                    })
        if relations:
            self.relation_repo.upsert_relations(relations)

        result = {
            'ok': True,
            'rows_in': len(raw_rows),
            'rows_deduped': len(rows),
            'products_upserted': len(upserted),
            'files_upserted': len(files),
            'images_upserted': len(images),
            'relations_upserted': len(relations),
        }
        logger.info("Importación: %s", result)
        return result

    @staticmethod
    def _id_map(products: List[Dict[str, Any]]) -> Dict[str, str]:
        id_by_no = {}
        for p in products:
            no = str(p.get('product_no') or '').strip().upper()
            pid = str(p.get('id') or '').strip()
            if no and pid:
                id_by_no[no] = pid
        return id_by_no
