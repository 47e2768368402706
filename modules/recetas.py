# modules/recetas.py
from __future__ import annotations

import io
import logging
from contextlib import contextmanager
from datetime import date, datetime

from flask import Blueprint, jsonify, redirect, render_template, request, send_file, url_for

from modules.auth import login_required
from modules.codigos import armar_txt, nombre_archivo
from modules import recetas_query as rq
from modules.recetas_query import FiltroRecetas

recetas_bp = Blueprint("recetas", __name__)
logger = logging.getLogger(__name__)

# ===================== Dependencias inyectadas =====================
_get_db_connection = None


def inject_dependencies(*, get_db_connection):
    global _get_db_connection
    _get_db_connection = get_db_connection


@contextmanager
def _conexion():
    conn = _get_db_connection()
    try:
        yield conn
    finally:
        conn.close()


# ===================== Helpers =====================
class DatoInvalido(ValueError):
    """Parámetro del request mal formado -> 400."""


def _datos_request():
    """Form tradicional o JSON (sólo objeto; una lista o escalar cuenta como vacío)."""
    if request.form:
        return request.form
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _normalize_fecha(fecha):
    if isinstance(fecha, datetime):
        return fecha.date()
    if isinstance(fecha, date):
        return fecha
    if isinstance(fecha, str):
        try:
            return datetime.strptime(fecha.strip(), "%Y-%m-%d").date()
        except ValueError:
            return None
    return None


def _fecha(data, campo, requerida=True):
    valor = data.get(campo)
    if not valor:
        if requerida:
            raise DatoInvalido(f"Falta {campo}")
        return None
    f = _normalize_fecha(valor)
    if f is None:
        raise DatoInvalido(f"Fecha inválida en {campo}: se espera YYYY-MM-DD")
    return f.isoformat()


def _sucursal(data, campo, requerida=False):
    """
    Sucursal como int. Si no es requerida, vacío o 'all' -> None (todas).
    En update/delete de lote tiene que venir un número concreto.
    """
    valor = data.get(campo)
    if valor is None or str(valor).strip() == "":
        if requerida:
            raise DatoInvalido(f"Falta {campo}")
        return None
    valor = str(valor).strip()
    if not requerida and valor.lower() == rq.SUCURSAL_TODAS:
        return None
    try:
        return int(valor)
    except ValueError:
        raise DatoInvalido(f"Sucursal inválida en {campo}")


def _filtro_exportacion(categoria=None) -> FiltroRecetas:
    data = _datos_request()
    desde = _fecha(data, 'startDate')
    hasta = _fecha(data, 'endDate')
    sucursal = _sucursal(data, 'sucursal')
    return FiltroRecetas.exportacion(desde, hasta, sucursal=sucursal, categoria=categoria)


def _exportar(categoria, msg_error):
    try:
        filtro = _filtro_exportacion(categoria)
    except DatoInvalido as e:
        return str(e), 400

    try:
        with _conexion() as conn:
            codigos = rq.codigos_para_exportar(conn, filtro)
    except Exception:
        logger.exception(msg_error)
        return msg_error, 500

    bio = io.BytesIO(armar_txt(codigos).encode('utf-8'))
    resp = send_file(bio, as_attachment=True,
                     download_name=nombre_archivo(categoria),
                     mimetype="text/plain")
    resp.headers['X-Cantidad-Codigos'] = str(len(codigos))
    return resp


def _contar(categoria, msg_error):
    try:
        filtro = _filtro_exportacion(categoria)
    except DatoInvalido as e:
        return str(e), 400

    try:
        with _conexion() as conn:
            count = rq.contar_recetas(conn, filtro)
    except Exception:
        logger.exception(msg_error)
        return msg_error, 500
    return jsonify(count=count, categoria=categoria)


def _render_listado(filtro, msg_error, filtros_usados=None):
    try:
        with _conexion() as conn:
            recetas = rq.listar_lotes(conn, filtro)
    except Exception:
        logger.exception(msg_error)
        return msg_error, 500
    return render_template('listado.html', recetas=recetas, filtros=filtros_usados or {})


# ===================== Sucursales =====================
@recetas_bp.get("/sucursales")
@login_required
def sucursales():
    try:
        with _conexion() as conn:
            items = rq.sucursales_distintas(conn)
    except Exception:
        logger.exception("Error al obtener las sucursales")
        return 'Error al obtener las sucursales', 500
    return jsonify(items)


# ===================== Exportaciones .txt =====================
@recetas_bp.get("/recetas")
@login_required
def recetas_view():
    return render_template('recetas.html')


@recetas_bp.post("/recetas")
@login_required
def exportar_todas():
    return _exportar(None, 'Error al obtener las recetas')


@recetas_bp.post("/recetas-apross")
@login_required
def exportar_apross():
    return _exportar('apross', 'Error al obtener códigos APROSS')


@recetas_bp.post("/recetas-pami")
@login_required
def exportar_pami():
    return _exportar('pami', 'Error al obtener códigos PAMI')


# ===================== Conteos (filas crudas) =====================
@recetas_bp.post("/recetas-count")
@login_required
def contar_todas():
    return _contar(None, 'Error al obtener la cantidad de recetas')


@recetas_bp.post("/recetas-apross-count")
@login_required
def contar_apross():
    return _contar('apross', 'Error al obtener la cantidad de códigos APROSS')


@recetas_bp.post("/recetas-pami-count")
@login_required
def contar_pami():
    return _contar('pami', 'Error al obtener la cantidad de códigos PAMI')


# ===================== Listado por lote =====================
@recetas_bp.get("/listado")
@login_required
def listado():
    return _render_listado(None, 'Error al obtener el listado de recetas')


@recetas_bp.post("/filter-recetas")
@login_required
def filtrar_listado():
    data = _datos_request()
    try:
        desde = _fecha(data, 'startDate', requerida=False)
        hasta = _fecha(data, 'endDate', requerida=False)
        sucursal = _sucursal(data, 'sucursal')
    except DatoInvalido as e:
        return str(e), 400

    filtro = FiltroRecetas.listado(desde, hasta, sucursal)
    usados = {'startDate': desde, 'endDate': hasta, 'sucursal': sucursal}
    return _render_listado(filtro, 'Error al filtrar el listado de recetas', usados)


@recetas_bp.post("/update-lote")
@login_required
def update_lote():
    data = _datos_request()
    try:
        actual = _sucursal(data, 'sucursalActual', requerida=True)
        fecha = _fecha(data, 'fecha')
        nueva = _sucursal(data, 'nuevaSucursal', requerida=True)
    except DatoInvalido as e:
        return str(e), 400

    try:
        with _conexion() as conn:
            rq.actualizar_sucursal_lote(conn, actual, fecha, nueva)
    except Exception:
        logger.exception("Error al actualizar el lote %s/%s", actual, fecha)
        return 'Error al actualizar el lote de recetas', 500
    return redirect(url_for('recetas.listado'))


@recetas_bp.post("/delete-lote")
@login_required
def delete_lote():
    data = _datos_request()
    try:
        sucursal = _sucursal(data, 'sucursal', requerida=True)
        fecha = _fecha(data, 'fecha')
    except DatoInvalido as e:
        return str(e), 400

    try:
        with _conexion() as conn:
            rq.eliminar_lote(conn, sucursal, fecha)
    except Exception:
        logger.exception("Error al eliminar el lote %s/%s", sucursal, fecha)
        return 'Error al eliminar el lote de recetas', 500
    return redirect(url_for('recetas.listado'))


# ===================== Dashboard =====================
@recetas_bp.get("/dashboard")
@login_required
def dashboard():
    return render_template('dashboard.html')


@recetas_bp.post("/dashboard-data")
@login_required
def dashboard_data():
    try:
        filtro = _filtro_exportacion()
    except DatoInvalido as e:
        return jsonify(error=str(e)), 400

    try:
        with _conexion() as conn:
            data = rq.serie_dashboard(conn, filtro)
            totals = rq.totales_dashboard(conn, filtro)
    except Exception as e:
        logger.exception("Error en dashboard-data")
        return jsonify(error='Error al obtener datos del dashboard', details=str(e)), 500

    logger.debug("Dashboard %r -> %s días", filtro, len(data))
    return jsonify(data=data, totals=totals)


@recetas_bp.get("/test-data")
@login_required
def test_data():
    """Diagnóstico de la tabla recetas (estructura, muestra y estadísticas)."""
    try:
        with _conexion() as conn:
            info = rq.diagnostico(conn)
    except Exception as e:
        logger.exception("Error en test-data")
        return jsonify(error=str(e)), 500
    return jsonify(info)
