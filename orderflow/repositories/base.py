# ==============================================================================
# REPOSITORIO BASE - Funcionalidad común para acceso a tablas de la plataforma
# ==============================================================================

from typing import Any, Dict, List, Optional, Sequence

from orderflow.platform import IPlatform, ITable
from orderflow.platform.interfaces import Filter, Ordering


class TableRepository:
    """
    Clase base para todos los repositorios.
    Envuelve una tabla de la plataforma y ofrece las operaciones comunes
    (buscar, insertar, actualizar, borrar) con filtros simples.

    Las subclases definen TABLE y agregan consultas con nombre propio.
    Los errores de la plataforma (PlatformError) se propagan sin tocar;
    los servicios deciden cómo reportarlos.
    """

    TABLE: str = ''

    def __init__(self, platform: IPlatform):
        """
        Inicializa el repositorio.

        Args:
            platform: Plataforma (RestPlatform o LocalPlatform)
        """
        self.platform = platform

    @property
    def table(self) -> ITable:
        return self.platform.table(self.TABLE)

    # =========================================================================
    # LECTURA
    # =========================================================================

    def find_all(
        self,
        filters: Sequence[Filter] = (),
        order: Sequence[Ordering] = (),
        limit: Optional[int] = None,
        columns: str = "*",
    ) -> List[Dict[str, Any]]:
        """
        Obtiene las filas que cumplen los filtros.

        Args:
            filters: Tuplas (columna, operador, valor)
            order: Tuplas (columna, ascendente)
            limit: Máximo de filas
            columns: Columnas a seleccionar

        Returns:
            Lista de filas
        """
        return self.table.select(columns, filters, order, limit)

    def find_one(self, filters: Sequence[Filter], columns: str = "*") -> Optional[Dict[str, Any]]:
        rows = self.table.select(columns, filters, (), 1)
        return rows[0] if rows else None

    def get_by_id(self, record_id: Any, columns: str = "*") -> Optional[Dict[str, Any]]:
        """Obtiene una fila por su id, o None si no existe."""
        if not record_id:
            return None
        return self.find_one([('id', 'eq', str(record_id))], columns)

    def find_in(self, column: str, values: Sequence[Any], columns: str = "*") -> List[Dict[str, Any]]:
        """Filas cuyo valor de columna está en la lista (vacía → [])."""
        values = [v for v in values if v is not None]
        if not values:
            return []
        return self.table.select(columns, [(column, 'in', list(values))])

    # =========================================================================
    # ESCRITURA
    # =========================================================================

    def insert(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """Inserta una fila y devuelve la fila guardada (con id)."""
        created = self.table.insert([row])
        return created[0] if created else {}

    def insert_many(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not rows:
            return []
        return self.table.insert(rows)

    def upsert_many(self, rows: List[Dict[str, Any]], on_conflict: Sequence[str]) -> List[Dict[str, Any]]:
        if not rows:
            return []
        return self.table.upsert(rows, on_conflict)

    def update_by_id(self, record_id: Any, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Actualiza una fila; devuelve la fila actualizada o None."""
        updated = self.table.update(patch, [('id', 'eq', str(record_id))])
        return updated[0] if updated else None

    def update_where(self, patch: Dict[str, Any], filters: Sequence[Filter]) -> List[Dict[str, Any]]:
        return self.table.update(patch, filters)

    def delete_by_id(self, record_id: Any) -> Optional[Dict[str, Any]]:
        """Elimina una fila; devuelve la fila eliminada o None."""
        removed = self.table.delete([('id', 'eq', str(record_id))])
        return removed[0] if removed else None

    def delete_where(self, filters: Sequence[Filter]) -> List[Dict[str, Any]]:
        return self.table.delete(filters)
