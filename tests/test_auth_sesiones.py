"""
Login / logout y sesiones guardadas en la tabla `session`.
"""
import json
from datetime import datetime, timedelta

import pytest
from itsdangerous import TimestampSigner

from modules.auth import hash_password, password_ok
from modules.sesiones import FMT_FECHA, MySQLSessionInterface, _ahora


def _filas_sesion(db):
    return db.query("SELECT sid, sess, expire FROM session")


# -------------------------------------------------------------------
# Login
# -------------------------------------------------------------------

class TestLogin:

    def test_raiz_redirige(self, client):
        resp = client.get("/")
        assert resp.status_code == 302
        assert resp.headers["Location"].endswith("/login")

    def test_pagina_login(self, client):
        resp = client.get("/login")
        assert resp.status_code == 200
        assert "Ingresar" in resp.get_data(as_text=True)

    def test_login_ok(self, client, db):
        db.crear_usuario("farmacia", "secreta")
        resp = client.post("/login", data={"username": "farmacia", "password": "secreta"})
        assert resp.status_code == 302
        assert resp.headers["Location"].endswith("/recetas")

        filas = _filas_sesion(db)
        assert len(filas) == 1
        assert json.loads(filas[0][1])["username"] == "farmacia"

        # con la cookie ya se accede a datos
        assert client.get("/sucursales").status_code == 200

    def test_login_json(self, client, db):
        db.crear_usuario("farmacia", "secreta")
        resp = client.post("/login", data=json.dumps({"username": "farmacia", "password": "secreta"}),
                           content_type="application/json")
        assert resp.status_code == 302

    def test_password_incorrecta(self, client, db):
        db.crear_usuario("farmacia", "secreta")
        resp = client.post("/login", data={"username": "farmacia", "password": "otra"})
        assert resp.status_code == 401
        assert resp.get_data(as_text=True) == "Usuario o contraseña incorrectos"
        assert _filas_sesion(db) == []

    def test_usuario_inexistente(self, client):
        resp = client.post("/login", data={"username": "nadie", "password": "x"})
        assert resp.status_code == 401
        assert resp.mimetype == "text/html"

    def test_demasiados_intentos(self, client, flask_app):
        flask_app.config["LOGIN_MAX_INTENTOS"] = 3
        try:
            codigos = [
                client.post("/login", data={"username": "nadie", "password": "x"}).status_code
                for _ in range(4)
            ]
        finally:
            flask_app.config["LOGIN_MAX_INTENTOS"] = 10
        assert codigos == [401, 401, 401, 429]

    def test_logins_correctos_no_cuentan(self, client, db, flask_app):
        db.crear_usuario("farmacia", "secreta")
        flask_app.config["LOGIN_MAX_INTENTOS"] = 2
        try:
            codigos = [
                client.post("/login", data={"username": "farmacia", "password": "secreta"}).status_code
                for _ in range(4)
            ]
            fallido = client.post("/login", data={"username": "farmacia", "password": "otra"}).status_code
        finally:
            flask_app.config["LOGIN_MAX_INTENTOS"] = 10
        assert codigos == [302, 302, 302, 302]
        assert fallido == 401

    def test_login_json_que_no_es_objeto(self, client):
        resp = client.post("/login", data=json.dumps(["farmacia", "secreta"]),
                           content_type="application/json")
        assert resp.status_code == 401

    def test_login_cambia_el_id_de_sesion(self, flask_app, db):
        db.crear_usuario("intruso", "clave1")
        db.crear_usuario("farmacia", "secreta")
        nombre = flask_app.config["SESSION_COOKIE_NAME"]

        intruso = flask_app.test_client()
        intruso.post("/login", data={"username": "intruso", "password": "clave1"})
        cookie_plantada = intruso.get_cookie(nombre).value
        sid_plantado = _filas_sesion(db)[0][0]

        victima = flask_app.test_client()
        victima.set_cookie(nombre, cookie_plantada)
        resp = victima.post("/login", data={"username": "farmacia", "password": "secreta"})
        assert resp.status_code == 302

        assert victima.get_cookie(nombre).value != cookie_plantada
        filas = _filas_sesion(db)
        assert sid_plantado not in [f[0] for f in filas]
        assert [json.loads(f[1])["username"] for f in filas] == ["farmacia"]

        # la cookie vieja ya no abre nada
        assert intruso.get("/sucursales").status_code == 302
        assert victima.get("/sucursales").status_code == 200

    def test_logout_borra_sesion(self, logged_client, db):
        assert len(_filas_sesion(db)) == 1
        resp = logged_client.get("/logout")
        assert resp.status_code == 302
        assert resp.headers["Location"].endswith("/login")
        assert _filas_sesion(db) == []
        assert logged_client.get("/sucursales").status_code == 302


class TestPasswords:

    def test_hash_y_verificacion(self):
        hashed = hash_password("secreta")
        assert hashed != "secreta"
        assert password_ok("secreta", hashed)
        assert not password_ok("otra", hashed)

    def test_hash_vacio_o_invalido(self):
        assert not password_ok("secreta", "")
        assert not password_ok("secreta", "texto-plano")


# -------------------------------------------------------------------
# Store de sesiones
# -------------------------------------------------------------------

class TestSesiones:

    def test_sesion_vacia_no_se_guarda(self, client, db):
        client.get("/login")
        assert _filas_sesion(db) == []

    def test_cookie_solo_lleva_el_id(self, logged_client, db, flask_app):
        cookie = logged_client.get_cookie(flask_app.config["SESSION_COOKIE_NAME"])
        sid = _filas_sesion(db)[0][0]
        assert "farmacia" not in cookie.value
        signer = TimestampSigner(flask_app.secret_key, salt=MySQLSessionInterface.salt)
        assert signer.unsign(cookie.value).decode("utf-8") == sid

    def test_ttl_de_la_fila(self, logged_client, db):
        expire = _filas_sesion(db)[0][2]
        restante = _ahora() + timedelta(days=30) - datetime.strptime(expire, FMT_FECHA)
        assert timedelta(0) <= restante < timedelta(minutes=1)

    def test_sesion_vencida(self, logged_client, db):
        vencida = (_ahora() - timedelta(minutes=1)).strftime(FMT_FECHA)
        db.raw.execute("UPDATE session SET expire = ?", (vencida,))
        db.raw.commit()

        assert logged_client.get("/sucursales").status_code == 302
        assert _filas_sesion(db) == []

    @pytest.mark.parametrize("contenido", ["{no es json", "[1, 2]"])
    def test_fila_ilegible(self, logged_client, db, contenido):
        db.raw.execute("UPDATE session SET sess = ?", (contenido,))
        db.raw.commit()

        assert logged_client.get("/sucursales").status_code == 302
        assert _filas_sesion(db) == []

    def test_firma_invalida(self, client, db, flask_app):
        client.set_cookie(flask_app.config["SESSION_COOKIE_NAME"], "falsa.firma")
        assert client.get("/sucursales").status_code == 302

    def test_purgar_vencidas(self, db):
        interfaz = MySQLSessionInterface(db.conectar, ttl=timedelta(days=30))
        vencida = (_ahora() - timedelta(days=1)).strftime(FMT_FECHA)
        vigente = (_ahora() + timedelta(days=1)).strftime(FMT_FECHA)
        db.raw.executemany(
            "INSERT INTO session (sid, sess, expire) VALUES (?, ?, ?)",
            [("a", "{}", vencida), ("b", "{}", vigente)],
        )
        db.raw.commit()

        assert interfaz.purgar_vencidas() == 1
        assert [f[0] for f in _filas_sesion(db)] == ["b"]
