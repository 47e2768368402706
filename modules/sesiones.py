# modules/sesiones.py
"""
Sesiones guardadas en la base (tabla `session`) en lugar de la cookie.

La cookie sólo lleva el id de sesión firmado con itsdangerous; el contenido
(JSON) y el vencimiento viven en la tabla:

    session(sid VARCHAR PK, sess TEXT, expire DATETIME)

Las sesiones vacías no se guardan y al vaciarse (logout) se borra la fila.
"""
from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timedelta, timezone

from flask.sessions import SessionInterface, SessionMixin
from itsdangerous import BadSignature, TimestampSigner
from werkzeug.datastructures import CallbackDict

logger = logging.getLogger(__name__)

FMT_FECHA = '%Y-%m-%d %H:%M:%S'


def _ahora():
    # naive en UTC, igual que lo que se guarda en la columna expire
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _parse_expire(valor):
    if isinstance(valor, datetime):
        return valor
    return datetime.strptime(str(valor)[:19], FMT_FECHA)


class SesionServidor(CallbackDict, SessionMixin):

    def __init__(self, initial=None, sid=None, new=False):
        def on_update(self):
            self.modified = True
        super().__init__(initial, on_update)
        self.sid = sid
        self.new = new
        self.modified = False
        self.sid_anterior = None

    def regenerar(self):
        """Cambia el id (en login). La fila del id viejo se borra al guardar."""
        if self.sid_anterior is None and not self.new:
            self.sid_anterior = self.sid
        self.sid = uuid.uuid4().hex
        self.modified = True


class MySQLSessionInterface(SessionInterface):
    session_class = SesionServidor
    salt = 'sesion-recetas'

    def __init__(self, get_db_connection, ttl=timedelta(days=30), tabla='session'):
        self.get_db_connection = get_db_connection
        self.ttl = ttl
        self.tabla = tabla

    # ---------- helpers ----------
    def _signer(self, app):
        return TimestampSigner(app.secret_key, salt=self.salt)

    def _nueva(self):
        return self.session_class(sid=uuid.uuid4().hex, new=True)

    def _leer(self, sid):
        conn = self.get_db_connection()
        try:
            cur = conn.cursor()
            cur.execute(f"SELECT sess, expire FROM {self.tabla} WHERE sid=%s", (sid,))
            row = cur.fetchone()
            cur.close()
            if row is None:
                return None
            data = None
            if _parse_expire(row[1]) >= _ahora():
                try:
                    data = json.loads(row[0])
                except ValueError:
                    logger.warning("Sesión %s con contenido ilegible, se descarta", sid)
                if not isinstance(data, dict):
                    data = None
            if data is None:
                cur = conn.cursor()
                cur.execute(f"DELETE FROM {self.tabla} WHERE sid=%s", (sid,))
                conn.commit()
                cur.close()
            return data
        finally:
            conn.close()

    def _guardar(self, sid, data, expira):
        conn = self.get_db_connection()
        try:
            cur = conn.cursor()
            cur.execute(
                f"REPLACE INTO {self.tabla} (sid, sess, expire) VALUES (%s, %s, %s)",
                (sid, json.dumps(data), expira.strftime(FMT_FECHA)),
            )
            conn.commit()
            cur.close()
        finally:
            conn.close()

    def _borrar(self, sid):
        conn = self.get_db_connection()
        try:
            cur = conn.cursor()
            cur.execute(f"DELETE FROM {self.tabla} WHERE sid=%s", (sid,))
            conn.commit()
            cur.close()
        finally:
            conn.close()

    def purgar_vencidas(self) -> int:
        """Borra las sesiones vencidas. Devuelve cuántas filas se fueron."""
        conn = self.get_db_connection()
        try:
            cur = conn.cursor()
            cur.execute(f"DELETE FROM {self.tabla} WHERE expire < %s", (_ahora().strftime(FMT_FECHA),))
            borradas = cur.rowcount
            conn.commit()
            cur.close()
        finally:
            conn.close()
        if borradas:
            logger.info("Sesiones vencidas eliminadas: %s", borradas)
        return borradas

    # ---------- SessionInterface ----------
    def open_session(self, app, request):
        if not app.secret_key:
            return None

        cookie = request.cookies.get(self.get_cookie_name(app))
        if not cookie:
            return self._nueva()

        try:
            sid = self._signer(app).unsign(cookie, max_age=int(self.ttl.total_seconds())).decode('utf-8')
        except BadSignature:
            logger.warning("Cookie de sesión con firma inválida desde %s", request.remote_addr)
            return self._nueva()

        data = self._leer(sid)
        if data is None:
            return self._nueva()
        return self.session_class(data, sid=sid)

    def save_session(self, app, session, response):
        name = self.get_cookie_name(app)
        domain = self.get_cookie_domain(app)
        path = self.get_cookie_path(app)

        if session.sid_anterior:
            self._borrar(session.sid_anterior)
            session.sid_anterior = None

        if not session:
            # Se vació (logout): borrar fila y cookie
            if session.modified and not session.new:
                self._borrar(session.sid)
                response.delete_cookie(name, domain=domain, path=path)
            return

        if not (session.modified or session.new or self.should_set_cookie(app, session)):
            return

        expira = _ahora() + self.ttl
        self._guardar(session.sid, dict(session), expira)
        if session.new:
            self.purgar_vencidas()

        firmado = self._signer(app).sign(session.sid.encode('utf-8')).decode('utf-8')
        response.set_cookie(
            name,
            firmado,
            expires=expira.replace(tzinfo=timezone.utc),
            httponly=self.get_cookie_httponly(app),
            domain=domain,
            path=path,
            secure=self.get_cookie_secure(app),
            samesite=self.get_cookie_samesite(app),
        )
