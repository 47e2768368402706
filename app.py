# app.py
from flask import Flask, session
from datetime import timedelta
import logging
import mysql.connector

from modules.config import Config
from modules.sesiones import MySQLSessionInterface
from modules import auth, recetas

# ========================================================================
# ===== CONFIGURACIÓN INICIAL DE LA APLICACIÓN =====
# ========================================================================

logger = logging.getLogger(__name__)

app = Flask(__name__)

app.secret_key = Config.SECRET_KEY
app.config['SESSION_COOKIE_SECURE'] = Config.SESSION_COOKIE_SECURE  # True solo en producción con HTTPS
app.config['SESSION_COOKIE_HTTPONLY'] = True
app.config['PERMANENT_SESSION_LIFETIME'] = timedelta(days=Config.SESSION_TTL_DAYS)
app.config['LOGIN_MAX_INTENTOS'] = Config.LOGIN_MAX_INTENTOS
app.config['LOGIN_VENTANA_SEG'] = Config.LOGIN_VENTANA_SEG


def get_db_connection():
    if not Config.DB_PASS:
        raise RuntimeError("DB_PASS no seteada")

    # kwargs comunes
    base_kwargs = dict(
        user=Config.DB_USER,
        password=Config.DB_PASS,
        database=Config.DB_NAME,
        autocommit=False,
        buffered=True,
        charset=Config.DB_CHARSET,
        use_unicode=True,
    )

    # Si DB_HOST empieza con /cloudsql usamos Unix Socket (Cloud SQL)
    if Config.DB_HOST.startswith("/cloudsql/"):
        conn = mysql.connector.connect(
            unix_socket=Config.DB_HOST,
            **base_kwargs
        )
    else:
        # fallback a host:puerto (por ejemplo en local)
        conn = mysql.connector.connect(
            host=Config.DB_HOST or "127.0.0.1",
            port=Config.DB_PORT,
            **base_kwargs
        )

    # Zona horaria de la sesión MySQL (si el server no tiene cargadas las tablas de tz, seguimos)
    try:
        with conn.cursor() as cur:
            cur.execute("SET time_zone = %s", (Config.DB_TIMEZONE,))
    except mysql.connector.Error as e:
        logger.warning("No se pudo setear time_zone=%s: %s", Config.DB_TIMEZONE, e)

    return conn


def configurar_dependencias(get_conn):
    """
    Inyecta la fábrica de conexiones en los blueprints y en el store de
    sesiones. Los tests la llaman con una conexión falsa.
    """
    auth.inject_dependencies(get_db_connection=get_conn)
    recetas.inject_dependencies(get_db_connection=get_conn)
    app.session_interface = MySQLSessionInterface(
        get_conn,
        ttl=app.config['PERMANENT_SESSION_LIFETIME'],
    )


configurar_dependencias(get_db_connection)

app.register_blueprint(auth.auth_bp)
app.register_blueprint(recetas.recetas_bp)


@app.context_processor
def inject_usuario():
    return {"usuario": session.get('username')}
