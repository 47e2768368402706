# modules/auth.py
from __future__ import annotations

import logging
from functools import wraps

import bcrypt
from flask import Blueprint, redirect, render_template, request, session, url_for

from modules.seguridad import limitar_intentos

auth_bp = Blueprint("auth", __name__)
logger = logging.getLogger(__name__)

MSG_CREDENCIALES = "Usuario o contraseña incorrectos"

# ===================== Dependencias inyectadas =====================
_get_db_connection = None


def inject_dependencies(*, get_db_connection):
    global _get_db_connection
    _get_db_connection = get_db_connection


# ===================== Decoradores =====================
def login_required(view):
    """Sin usuario en sesión -> redirect a /login (nunca datos ni error)."""
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not session.get('user_id'):
            return redirect(url_for('auth.login'))
        return view(*args, **kwargs)
    return wrapped


# ===================== Helpers =====================
def hash_password(password_plain: str) -> str:
    return bcrypt.hashpw(password_plain.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def password_ok(password_plain: str, hashed: str) -> bool:
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(password_plain.encode('utf-8'), hashed.encode('utf-8'))
    except ValueError:
        # hash mal formado en la tabla
        logger.warning("Hash de contraseña inválido en users")
        return False


def _fetch_user_by_username(username):
    conn = _get_db_connection()
    try:
        cur = conn.cursor(dictionary=True)
        cur.execute("""
            SELECT id, username, password
            FROM users
            WHERE username=%s
            LIMIT 1
        """, (username,))
        user = cur.fetchone()
        cur.close()
        return user
    finally:
        conn.close()


# ===================== Rutas =====================
@auth_bp.get("/")
def index():
    return redirect(url_for('auth.login'))


@auth_bp.get("/login")
def login():
    return render_template('login.html', error=None)


@auth_bp.post("/login")
@limitar_intentos()
def login_post():
    # Form tradicional o JSON
    data = request.form if request.form else request.get_json(silent=True)
    if not hasattr(data, 'get'):
        data = {}
    username = str(data.get('username') or '').strip()
    password = str(data.get('password') or '')

    try:
        user = _fetch_user_by_username(username)
    except Exception:
        logger.exception("Error consultando usuario en login")
        return 'Error al iniciar sesión', 500

    if not user or not password_ok(password, user.get('password') or ''):
        logger.info("Login rechazado para %r desde %s", username, request.remote_addr)
        return MSG_CREDENCIALES, 401

    session.clear()
    # id nuevo: una cookie plantada antes del login no queda con el usuario
    session.regenerar()
    session['user_id'] = user['id']
    session['username'] = user['username']
    logger.info("Login ok: %s", user['username'])
    return redirect(url_for('recetas.recetas_view'))


@auth_bp.get("/logout")
def logout():
    usuario = session.get('username')
    session.clear()
    if usuario:
        logger.info("Logout: %s", usuario)
    return redirect(url_for('auth.login'))
