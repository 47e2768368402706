# modules/recetas_query.py
"""
Consultas sobre la tabla `recetas`.

Los filtros opcionales (fechas, sucursal, categoría) se arman como una lista
de condiciones con nombre; cada valor viaja como parámetro (%s) y nunca se
pega al texto del SQL.

Todas las funciones reciben una conexión DB-API abierta; quien llama es
responsable de cerrarla.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from modules.codigos import CATEGORIAS, limpiar_codigos, prefijo_de

logger = logging.getLogger(__name__)

SUCURSAL_TODAS = "all"


def _sucursal_o_none(sucursal):
    """'' / None / 'all' significan 'todas las sucursales'."""
    if sucursal is None:
        return None
    if isinstance(sucursal, str):
        s = sucursal.strip()
        if not s or s.lower() == SUCURSAL_TODAS:
            return None
        return int(s)
    return int(sucursal)


def _iso(v):
    """MySQL devuelve date/datetime; para JSON/plantillas usamos YYYY-MM-DD."""
    if v is None:
        return None
    if hasattr(v, "isoformat"):
        return v.isoformat()
    return str(v)


class FiltroRecetas:
    """
    Predicado WHERE compuesto por condiciones con nombre.

    Uso:
        f = FiltroRecetas.exportacion("2024-01-01", "2024-01-31", sucursal="3", categoria="apross")
        cur.execute(f"SELECT numero FROM recetas {f.where_sql()}", f.params())
    """

    def __init__(self):
        self.condiciones: List[Tuple[str, str, tuple]] = []
        self.categoria: Optional[str] = None

    def agregar(self, nombre: str, sql: str, *valores):
        self.condiciones.append((nombre, sql, valores))
        return self

    # ---------- condiciones ----------
    def rango_fechas(self, desde, hasta):
        return self.agregar("rango_fechas", "fechacreacion BETWEEN %s AND %s", desde, hasta)

    def desde(self, fecha):
        if fecha:
            self.agregar("desde", "fechacreacion >= %s", fecha)
        return self

    def hasta(self, fecha):
        if fecha:
            self.agregar("hasta", "fechacreacion <= %s", fecha)
        return self

    def sucursal(self, sucursal):
        suc = _sucursal_o_none(sucursal)
        if suc is not None:
            self.agregar("sucursal", "sucursales = %s", suc)
        return self

    def con_categoria(self, categoria):
        # Prefijo sobre el texto crudo guardado, no sobre el código limpio
        if categoria is not None:
            self.categoria = categoria
            self.agregar("categoria", "numero LIKE %s", prefijo_de(categoria) + "%")
        return self

    # ---------- armado ----------
    def nombres(self) -> List[str]:
        return [nombre for nombre, _, _ in self.condiciones]

    def where_sql(self) -> str:
        if not self.condiciones:
            return ""
        return "WHERE " + " AND ".join(sql for _, sql, _ in self.condiciones)

    def params(self) -> tuple:
        out = []
        for _, _, valores in self.condiciones:
            out.extend(valores)
        return tuple(out)

    # ---------- atajos ----------
    @classmethod
    def exportacion(cls, desde, hasta, sucursal=None, categoria=None) -> "FiltroRecetas":
        """Rango de fechas obligatorio (inclusive), sucursal y categoría opcionales."""
        return cls().rango_fechas(desde, hasta).sucursal(sucursal).con_categoria(categoria)

    @classmethod
    def listado(cls, desde=None, hasta=None, sucursal=None) -> "FiltroRecetas":
        """Para el listado agrupado cada extremo del rango es opcional."""
        return cls().desde(desde).hasta(hasta).sucursal(sucursal)

    def __repr__(self):
        return f"FiltroRecetas({self.nombres()!r}, {self.params()!r})"


# ===================== Lecturas =====================

def obtener_numeros(conn, filtro: FiltroRecetas) -> list:
    """Números crudos (sin limpiar) de las recetas que cumplen el filtro."""
    cur = conn.cursor()
    try:
        cur.execute(f"SELECT numero FROM recetas {filtro.where_sql()}", filtro.params())
        return [row[0] for row in cur.fetchall()]
    finally:
        cur.close()


def contar_recetas(conn, filtro: FiltroRecetas) -> int:
    """Cantidad de filas crudas (antes de limpiar y deduplicar)."""
    cur = conn.cursor()
    try:
        cur.execute(f"SELECT COUNT(*) FROM recetas {filtro.where_sql()}", filtro.params())
        row = cur.fetchone()
        return int(row[0]) if row else 0
    finally:
        cur.close()


def codigos_para_exportar(conn, filtro: FiltroRecetas) -> List[str]:
    """
    Códigos limpios y sin duplicados para el .txt.
    Si el filtro tiene categoría, además del LIKE sobre el crudo se vuelve a
    chequear el prefijo del código limpio.
    """
    numeros = obtener_numeros(conn, filtro)
    prefijo = prefijo_de(filtro.categoria) if filtro.categoria else None
    codigos = limpiar_codigos(numeros, prefijo=prefijo)
    logger.info("Exportación %s: %s filas -> %s códigos", filtro.nombres(), len(numeros), len(codigos))
    return codigos


def listar_lotes(conn, filtro: Optional[FiltroRecetas] = None) -> List[dict]:
    """
    Recetas agrupadas por (sucursal, fecha) con su cantidad.
    Siempre de la fecha más reciente a la más vieja.
    """
    filtro = filtro or FiltroRecetas()
    sql = f"""
        SELECT sucursales, fechacreacion, COUNT(*) AS cantidad
        FROM recetas
        {filtro.where_sql()}
        GROUP BY sucursales, fechacreacion
        ORDER BY fechacreacion DESC, sucursales ASC
    """
    cur = conn.cursor(dictionary=True)
    try:
        cur.execute(sql, filtro.params())
        rows = cur.fetchall()
    finally:
        cur.close()
    return [
        {
            "sucursales": r["sucursales"],
            "fechacreacion": _iso(r["fechacreacion"]),
            "cantidad": int(r["cantidad"]),
        }
        for r in rows
    ]


def sucursales_distintas(conn) -> List[int]:
    cur = conn.cursor()
    try:
        cur.execute("SELECT DISTINCT sucursales FROM recetas")
        valores = [row[0] for row in cur.fetchall()]
    finally:
        cur.close()

    salida = set()
    for v in valores:
        if v is None:
            continue
        try:
            salida.add(int(str(v).strip()))
        except ValueError:
            logger.warning("Sucursal no numérica ignorada: %r", v)
    return sorted(salida)


# ===================== Escrituras (por lote) =====================

def actualizar_sucursal_lote(conn, sucursal_actual, fecha, nueva_sucursal) -> int:
    """Pasa todas las recetas del lote (sucursal_actual, fecha) a nueva_sucursal."""
    cur = conn.cursor()
    try:
        cur.execute("""
            UPDATE recetas
            SET sucursales = %s
            WHERE sucursales = %s AND fechacreacion = %s
        """, (nueva_sucursal, sucursal_actual, fecha))
        afectadas = cur.rowcount
        conn.commit()
    finally:
        cur.close()
    logger.info("Lote %s/%s reasignado a sucursal %s (%s filas)", sucursal_actual, fecha, nueva_sucursal, afectadas)
    return afectadas


def eliminar_lote(conn, sucursal, fecha) -> int:
    cur = conn.cursor()
    try:
        cur.execute("""
            DELETE FROM recetas
            WHERE sucursales = %s AND fechacreacion = %s
        """, (sucursal, fecha))
        afectadas = cur.rowcount
        conn.commit()
    finally:
        cur.close()
    logger.info("Lote %s/%s eliminado (%s filas)", sucursal, fecha, afectadas)
    return afectadas


# ===================== Dashboard =====================

def _columnas_categoria(alias_fmt: str) -> Tuple[str, tuple]:
    """COUNT(CASE WHEN numero LIKE %s ...) por cada categoría, en orden de CATEGORIAS."""
    cols = []
    params = []
    for nombre, digito in CATEGORIAS.items():
        cols.append(f"COUNT(CASE WHEN numero LIKE %s THEN 1 END) AS {alias_fmt.format(nombre)}")
        params.append(digito + "%")
    return ",\n               ".join(cols), tuple(params)


def serie_dashboard(conn, filtro: FiltroRecetas) -> List[dict]:
    """Totales por día (total / apross / pami), de la fecha más vieja a la más nueva."""
    cols, cols_params = _columnas_categoria("{}")
    sql = f"""
        SELECT DATE(fechacreacion) AS fecha,
               COUNT(*) AS total,
               {cols}
        FROM recetas
        {filtro.where_sql()}
        GROUP BY DATE(fechacreacion)
        ORDER BY DATE(fechacreacion) ASC
    """
    cur = conn.cursor(dictionary=True)
    try:
        cur.execute(sql, cols_params + filtro.params())
        rows = cur.fetchall()
    finally:
        cur.close()

    data = []
    for r in rows:
        item = {"date": _iso(r["fecha"]), "total": int(r["total"])}
        for nombre in CATEGORIAS:
            item[nombre] = int(r[nombre] or 0)
        data.append(item)
    return data


def totales_dashboard(conn, filtro: FiltroRecetas) -> dict:
    cols, cols_params = _columnas_categoria("total_{}")
    sql = f"""
        SELECT COUNT(*) AS total_general,
               {cols}
        FROM recetas
        {filtro.where_sql()}
    """
    cur = conn.cursor(dictionary=True)
    try:
        cur.execute(sql, cols_params + filtro.params())
        row = cur.fetchone() or {}
    finally:
        cur.close()

    totales = {"total": int(row.get("total_general") or 0)}
    for nombre in CATEGORIAS:
        totales[nombre] = int(row.get(f"total_{nombre}") or 0)
    return totales


def diagnostico(conn) -> dict:
    """Estructura, muestra y estadísticas de la tabla (endpoint /test-data)."""
    cur = conn.cursor(dictionary=True)
    try:
        cur.execute("SELECT * FROM recetas LIMIT 5")
        muestra = cur.fetchall()
        columnas = [d[0] for d in (cur.description or [])]

        cur.execute("SELECT COUNT(*) AS total FROM recetas")
        total = int(cur.fetchone()["total"])

        cols, cols_params = _columnas_categoria("{}_count")
        cur.execute(f"""
            SELECT {cols},
                   MIN(fechacreacion) AS min_date,
                   MAX(fechacreacion) AS max_date
            FROM recetas
        """, cols_params)
        stats = cur.fetchone() or {}
    finally:
        cur.close()

    estadisticas = {f"{n}_count": int(stats.get(f"{n}_count") or 0) for n in CATEGORIAS}
    estadisticas["total_count"] = total
    estadisticas["min_date"] = _iso(stats.get("min_date"))
    estadisticas["max_date"] = _iso(stats.get("max_date"))

    return {
        "tableStructure": [{"column_name": c} for c in columnas],
        "sampleData": [{k: _iso(v) if k == "fechacreacion" else v for k, v in r.items()} for r in muestra],
        "totalRecords": total,
        "statistics": estadisticas,
    }
