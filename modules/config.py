"""
Configuración de la app leyendo variables de entorno (.env en local)
"""
import os
from dotenv import load_dotenv

# Carga .env si existe (en Cloud Run las variables vienen del servicio)
load_dotenv()


def _flag(nombre, default='0'):
    return (os.getenv(nombre, default) or '').strip().lower() in ('1', 'true', 't', 'yes', 'y')


class Config:
    """Configuración de la aplicación"""

    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-recetas-cambiar')

    # Base de datos (MySQL)
    DB_HOST = os.getenv('DB_HOST', '')   # puede ser '/cloudsql/PROJECT:REGION:INSTANCE'
    DB_PORT = int(os.getenv('DB_PORT', 3306))
    DB_USER = os.getenv('DB_USER', 'app_recetas')
    DB_PASS = os.getenv('DB_PASS')
    DB_NAME = os.getenv('DB_NAME', 'recetasdb')
    DB_CHARSET = os.getenv('DB_CHARSET', 'utf8mb4')
    DB_TIMEZONE = os.getenv('DB_TIMEZONE', 'America/Argentina/Cordoba')

    # Sesión server-side
    SESSION_TTL_DAYS = int(os.getenv('SESSION_TTL_DAYS', 30))
    SESSION_COOKIE_SECURE = _flag('SESSION_COOKIE_SECURE')

    # Intentos de login por IP
    LOGIN_MAX_INTENTOS = int(os.getenv('LOGIN_MAX_INTENTOS', 10))
    LOGIN_VENTANA_SEG = int(os.getenv('LOGIN_VENTANA_SEG', 300))

    # Servidor
    ENVIRONMENT = os.getenv('ENVIRONMENT', 'development')
    PORT = int(os.getenv('PORT', 8080))
    HOST = os.getenv('HOST', '0.0.0.0')

    @classmethod
    def validate(cls):
        """Valida que esté la config mínima para conectarse a la base"""
        required = ['DB_PASS', 'DB_NAME', 'DB_USER']

        missing = [key for key in required if not getattr(cls, key)]

        if missing:
            raise ValueError(f"Faltan variables de entorno: {', '.join(missing)}")
