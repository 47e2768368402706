"""
Fixtures compartidos.

En lugar de MySQL se usa un sqlite en memoria envuelto para que hable como
mysql.connector: placeholders %s, cursor(dictionary=True), rowcount, etc.
"""
import sqlite3

import bcrypt
import mysql.connector
import pytest

import app as app_module
from modules.seguridad import rate_limiter


SCHEMA = """
CREATE TABLE recetas (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    numero TEXT,
    fechacreacion TEXT NOT NULL,
    sucursales INTEGER
);
CREATE TABLE users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL UNIQUE,
    password TEXT NOT NULL
);
CREATE TABLE session (
    sid TEXT PRIMARY KEY,
    sess TEXT NOT NULL,
    expire TEXT NOT NULL
);
"""


# ---------------------------------------------------------------------------
# Conexión falsa
# ---------------------------------------------------------------------------

class FakeCursor:

    def __init__(self, db, dictionary=False):
        self.db = db
        self._cur = db.raw.cursor()
        self.dictionary = dictionary
        self.executed = []

    def execute(self, sql, params=()):
        self.executed.append((sql, tuple(params)))
        if self.db.caida and "recetas" in sql:
            raise mysql.connector.errors.OperationalError(msg="Can't connect to MySQL server")
        self._cur.execute(sql.replace("%s", "?"), tuple(params))

    def _row(self, row):
        if row is None or not self.dictionary:
            return row
        cols = [d[0] for d in self._cur.description]
        return dict(zip(cols, row))

    def fetchone(self):
        return self._row(self._cur.fetchone())

    def fetchall(self):
        return [self._row(r) for r in self._cur.fetchall()]

    @property
    def rowcount(self):
        return self._cur.rowcount

    @property
    def lastrowid(self):
        return self._cur.lastrowid

    @property
    def description(self):
        return self._cur.description

    def close(self):
        self._cur.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


class FakeConnection:

    def __init__(self, db):
        self.db = db
        self._raw = db.raw
        self.closed = False

    def cursor(self, dictionary=False, **kwargs):
        return FakeCursor(self.db, dictionary=dictionary)

    def commit(self):
        self._raw.commit()

    def rollback(self):
        self._raw.rollback()

    def close(self):
        self.closed = True


class FakeDB:
    """Una base sqlite compartida; cada conectar() es una 'conexión' nueva."""

    def __init__(self):
        self.raw = sqlite3.connect(":memory:", check_same_thread=False)
        self.raw.executescript(SCHEMA)
        self.conexiones = []
        # True: toda consulta sobre la tabla recetas falla (las sesiones siguen andando)
        self.caida = False

    def conectar(self):
        conn = FakeConnection(self)
        self.conexiones.append(conn)
        return conn

    def insertar_recetas(self, filas):
        """filas = [(numero, fecha, sucursal), ...]"""
        self.raw.executemany(
            "INSERT INTO recetas (numero, fechacreacion, sucursales) VALUES (?, ?, ?)",
            filas,
        )
        self.raw.commit()

    def crear_usuario(self, username, password):
        hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")
        self.raw.execute("INSERT INTO users (username, password) VALUES (?, ?)", (username, hashed))
        self.raw.commit()

    def query(self, sql, params=()):
        return self.raw.execute(sql, params).fetchall()

    def close(self):
        self.raw.close()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def db():
    fake = FakeDB()
    yield fake
    fake.close()


@pytest.fixture
def conn(db):
    return db.conectar()


@pytest.fixture
def flask_app(db):
    app_module.configurar_dependencias(db.conectar)
    app_module.app.config["TESTING"] = True
    rate_limiter.reset()
    yield app_module.app
    rate_limiter.reset()
    app_module.configurar_dependencias(app_module.get_db_connection)


@pytest.fixture
def client(flask_app):
    """Cliente sin login."""
    return flask_app.test_client()


@pytest.fixture
def logged_client(flask_app):
    """Cliente con usuario en sesión (sesión guardada en la tabla session)."""
    c = flask_app.test_client()
    with c.session_transaction() as sess:
        sess["user_id"] = 1
        sess["username"] = "farmacia"
    return c


@pytest.fixture
def recetas_ejemplo(db):
    db.insertar_recetas([
        ("9A1", "2024-01-01", 1),
        ("9A1", "2024-01-01", 1),
        ("8B2", "2024-01-01", 1),
        ("O&I'B", "2024-01-02", 2),
        ("9D12", "2024-01-02", 2),
        ("abc", "2024-01-02", 2),
        ("S(l)", "2024-01-03", 3),
        ("8l23", "2024-01-03", 1),
    ])
    return db
