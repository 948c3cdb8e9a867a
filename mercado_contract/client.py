"""
Cliente HTTP para el recurso /mercado.

Envuelve una sesión de requests y normaliza cada respuesta en un ApiResponse.
Los timeouts se propagan como RequestTimeout; los errores de conexión se
reportan como una respuesta 503, igual que lo haría un gateway.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Optional

import requests
from requests import codes
from requests.adapters import HTTPAdapter
from requests.structures import CaseInsensitiveDict

from . import config
from .exceptions import RequestTimeout

logger = logging.getLogger(__name__)


@dataclass
class ApiResponse:
    """Resultado de una petición al servicio."""
    method: str
    url: str
    status_code: int
    headers: CaseInsensitiveDict
    body: Any
    text: str
    elapsed: float
    synthetic: bool = False

    @classmethod
    def from_requests(cls, method, response):
        try:
            body = response.json()
        except ValueError:
            body = None
        return cls(
            method=method,
            url=response.url,
            status_code=response.status_code,
            headers=response.headers,
            body=body,
            text=response.text,
            elapsed=response.elapsed.total_seconds(),
        )

    @classmethod
    def unavailable(cls, method, url, error, elapsed):
        """Respuesta sintética para un host que no se pudo contactar."""
        body = {"message": f"Service unavailable: {error}"}
        return cls(
            method=method,
            url=url,
            status_code=codes.SERVICE_UNAVAILABLE,
            headers=CaseInsensitiveDict({"content-type": "application/json"}),
            body=body,
            text=str(body),
            elapsed=elapsed,
            synthetic=True,
        )


class MercadoClient:
    def __init__(self, base_url=config.MERCADO_BASE_URL, timeout=config.REQUEST_TIMEOUT, session=None):
        self.base_url = base_url.rstrip("/")
        self.endpoint = f"{self.base_url}{config.MERCADO_PATH}"
        self.timeout = timeout
        self.session = session or self._build_session()

    @staticmethod
    def _build_session():
        session = requests.Session()
        adapter = HTTPAdapter(pool_connections=config.POOL_SIZE, pool_maxsize=config.POOL_SIZE)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def url(self, mercado_id=None):
        if mercado_id is None:
            return self.endpoint
        return f"{self.endpoint}/{mercado_id}"

    def request(self, method, url, json=None, timeout: Optional[float] = None) -> ApiResponse:
        """Envía una petición sin reintentos y devuelve la respuesta normalizada."""
        timeout = self.timeout if timeout is None else timeout
        start = time.perf_counter()
        try:
            response = self.session.request(method, url, json=json, timeout=timeout)
        except requests.exceptions.Timeout as e:
            logger.warning(f"{method} {url} timed out after {timeout}s")
            raise RequestTimeout(method, url, timeout) from e
        except requests.exceptions.ConnectionError as e:
            elapsed = time.perf_counter() - start
            logger.error(f"Connection error on {method} {url}: {e}")
            return ApiResponse.unavailable(method, url, e, elapsed)

        logger.debug(f"{method} {url} -> {response.status_code} in {response.elapsed.total_seconds():.3f}s")
        return ApiResponse.from_requests(method, response)

    def list(self, **kwargs):
        return self.request("GET", self.url(), **kwargs)

    def create(self, payload, **kwargs):
        return self.request("POST", self.url(), json=payload, **kwargs)

    def retrieve(self, mercado_id, **kwargs):
        return self.request("GET", self.url(mercado_id), **kwargs)

    def update(self, mercado_id, payload, **kwargs):
        return self.request("PUT", self.url(mercado_id), json=payload, **kwargs)

    def delete(self, mercado_id=None, **kwargs):
        return self.request("DELETE", self.url(mercado_id), **kwargs)

    def batch(self, method, url, json=None, size=config.RATE_LIMIT_BATCH_SIZE):
        """
        Dispara `size` peticiones idénticas en paralelo y espera todas.
        El orden del resultado no refleja el orden de llegada.
        """
        logger.info(f"Sending {size} concurrent {method} requests to {url}")
        with ThreadPoolExecutor(max_workers=size) as executor:
            futures = [executor.submit(self.request, method, url, json) for _ in range(size)]
            return [future.result() for future in futures]

    def close(self):
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
