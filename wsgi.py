# wsgi.py: arranque del servidor de recetas
# Nota: en Cloud Run el arranque lo hace gunicorn/waitress con `wsgi:app`. Correrlo directo es para uso local.

import os
import sys
import logging
from datetime import datetime

# ===== Logging a archivo + consola =====
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
LOG_DIR = os.path.join(BASE_DIR, "logs")
os.makedirs(LOG_DIR, exist_ok=True)

LOG_FILE = os.path.join(LOG_DIR, f"server_{datetime.now().strftime('%Y%m%d')}.log")

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.FileHandler(LOG_FILE, encoding="utf-8"),
        logging.StreamHandler(sys.stdout),
    ],
)
logger = logging.getLogger("wsgi-recetas")

from app import app  # noqa: E402  (el logging tiene que quedar configurado antes)
from modules.config import Config  # noqa: E402


def get_server_info():
    """Devuelve info del entorno para loguear al inicio."""
    import platform
    import multiprocessing
    return {
        "date": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        "platform": platform.platform(),
        "python": platform.python_version(),
        "cpus": multiprocessing.cpu_count(),
        "directory": BASE_DIR,
    }


def main():
    Config.validate()
    info = get_server_info()

    logger.info("=" * 60)
    logger.info("SERVIDOR RECETAS (%s)", Config.ENVIRONMENT)
    logger.info("Fecha/Hora: %s", info['date'])
    logger.info("Sistema:    %s", info['platform'])
    logger.info("Python:     %s", info['python'])
    logger.info("CPUs:       %s", info['cpus'])
    logger.info("Directorio: %s", info['directory'])
    logger.info("Logs:       %s", LOG_FILE)
    logger.info("=" * 60)

    try:
        # Import diferido: en algunas imágenes waitress no está instalada
        from waitress import serve
    except ModuleNotFoundError:
        logger.warning("Waitress no instalado. Usando servidor de desarrollo de Flask.")
        app.run(host=Config.HOST, port=Config.PORT, debug=Config.ENVIRONMENT == 'development')
        return

    threads = max(2, info["cpus"] * 2)
    logger.info("Iniciando con Waitress en http://%s:%s (threads=%s)", Config.HOST, Config.PORT, threads)
    serve(app, host=Config.HOST, port=Config.PORT, threads=threads)


if __name__ == "__main__":
    main()
