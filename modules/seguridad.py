"""
Límite de intentos para endpoints sensibles (login)
====================================================

Ventana deslizante en memoria por (clave, endpoint). La clave es la IP del
cliente porque en el login todavía no hay usuario en sesión.

Sólo cuentan los intentos fallidos (respuesta 401): detrás del proxy de
Cloud Run muchos usuarios comparten IP y los logins correctos no deben
bloquear a nadie.

Uso:
    @auth_bp.post('/login')
    @limitar_intentos(max_requests=10, window_seconds=300)
    def login_post():
        ...
"""

import time
import logging
import threading
from functools import wraps
from collections import defaultdict
from typing import Dict, List, Tuple, Optional

from flask import request, current_app, make_response

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    - Cada clave tiene una lista de timestamps de requests recientes
    - Se descartan los que quedaron fuera de la ventana
    - Si la lista está llena, se rechaza e informa cuánto esperar

    Compartido entre los threads de waitress: todo acceso a request_log
    pasa por self._lock.
    """

    def __init__(self, reloj=time.time):
        # { (clave, endpoint): [timestamps] }
        self.request_log: Dict[Tuple[str, str], List[float]] = defaultdict(list)
        self.cleanup_interval = 300
        self.reloj = reloj
        self.last_cleanup = reloj()
        self._lock = threading.Lock()

    def _espera(self, key, max_requests: int, window_seconds: int, now: float) -> Optional[int]:
        cutoff = now - window_seconds
        recientes = [ts for ts in self.request_log.get(key, ()) if ts > cutoff]
        if recientes:
            self.request_log[key] = recientes
        else:
            self.request_log.pop(key, None)

        if len(recientes) >= max_requests:
            return int(recientes[0] + window_seconds - now) + 1
        return None

    def _anotar(self, key, now: float, window_seconds: int):
        self.request_log[key].append(now)
        if now - self.last_cleanup > self.cleanup_interval:
            self._cleanup(window_seconds)
            self.last_cleanup = now

    def is_allowed(self, clave: str, endpoint: str, max_requests: int, window_seconds: int) -> Tuple[bool, Optional[int]]:
        """
        Verifica y anota el request en un solo paso.

        Returns:
            (permitido, segundos_de_espera | None)
        """
        key = (clave, endpoint)
        with self._lock:
            now = self.reloj()
            wait_time = self._espera(key, max_requests, window_seconds, now)
            if wait_time is not None:
                return False, wait_time
            self._anotar(key, now, window_seconds)
        return True, None

    def bloqueado(self, clave: str, endpoint: str, max_requests: int, window_seconds: int) -> Optional[int]:
        """Segundos a esperar si la clave ya llenó la ventana, None si puede seguir. No anota nada."""
        with self._lock:
            return self._espera((clave, endpoint), max_requests, window_seconds, self.reloj())

    def registrar(self, clave: str, endpoint: str, window_seconds: int):
        """Anota un intento (fallido) para la clave."""
        with self._lock:
            self._anotar((clave, endpoint), self.reloj(), window_seconds)

    def reset(self):
        with self._lock:
            self.request_log.clear()

    def _cleanup(self, window_seconds: int):
        # se llama con self._lock tomado
        now = self.reloj()
        keys_to_delete = [
            key for key, timestamps in self.request_log.items()
            if not timestamps or (now - timestamps[-1]) > window_seconds
        ]
        for key in keys_to_delete:
            del self.request_log[key]


# Instancia global
rate_limiter = RateLimiter()


def limitar_intentos(max_requests: Optional[int] = None, window_seconds: Optional[int] = None,
                     status_fallido: int = 401):
    """
    Decorador: corta con 429 cuando una IP acumula max_requests intentos
    fallidos (respuestas con status_fallido) en la ventana.
    Sin argumentos toma LOGIN_MAX_INTENTOS / LOGIN_VENTANA_SEG de app.config.
    """
    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            maximo = max_requests or current_app.config.get('LOGIN_MAX_INTENTOS', 10)
            ventana = window_seconds or current_app.config.get('LOGIN_VENTANA_SEG', 300)
            clave = request.remote_addr or 'desconocida'
            endpoint = request.endpoint or request.path

            wait_time = rate_limiter.bloqueado(clave, endpoint, maximo, ventana)
            if wait_time is not None:
                logger.warning("Demasiados intentos en %s desde %s", endpoint, clave)
                return f'Demasiados intentos. Esperá {wait_time} segundos.', 429

            response = make_response(f(*args, **kwargs))
            if response.status_code == status_fallido:
                rate_limiter.registrar(clave, endpoint, ventana)
            return response
        return decorated
    return decorator
