"""
Verificador del contrato del recurso /mercado.

Cada método ejecuta un ciclo petición/respuesta, valida status, cuerpo,
cabeceras y tiempo de respuesta, y lanza ContractViolation al primer
incumplimiento. No se hacen reintentos.
"""

import logging
import re
import time
from collections import Counter

from requests import codes

from . import config, schemas
from .client import MercadoClient
from .exceptions import ContractViolation, RequestTimeout, ServiceUnavailable
from .expectations import (
    expect_header,
    expect_json_like,
    expect_json_path,
    expect_json_schema,
    expect_response_time,
    expect_status,
    match_like,
)

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = r"application/json"
NOT_FOUND_MESSAGE = re.compile("not found")

CATALOG_CATEGORIES = ("acougue", "bebidas", "congelados")

# Una petición repetida sobre un recurso puede ser limitada por el servidor
RATE_LIMIT_ACCEPTED = {
    "GET": {codes.OK, codes.TOO_MANY_REQUESTS},
    # Solo una creación con el mismo CNPJ puede tener éxito
    "POST": {codes.CREATED, codes.CONFLICT, codes.TOO_MANY_REQUESTS},
    "PUT": {codes.OK, codes.TOO_MANY_REQUESTS},
    # Solo la primera eliminación encuentra el recurso
    "DELETE": {codes.OK, codes.NOT_FOUND, codes.TOO_MANY_REQUESTS},
}

# Status que a lo sumo una petición del lote puede obtener
RATE_LIMIT_SINGLE_SUCCESS = {
    "POST": codes.CREATED,
    "DELETE": codes.OK,
}


class MercadoContractVerifier:
    def __init__(self, base_url=config.MERCADO_BASE_URL, timeout=config.REQUEST_TIMEOUT, client=None):
        self.client = client or MercadoClient(base_url, timeout)
        self.timeout = self.client.timeout

    def _expect(self, response, status, json_body=False):
        expect_status(response, status)
        expect_response_time(response, self.timeout)
        if json_body:
            expect_header(response, "content-type", JSON_CONTENT_TYPE)

    def ensure_available(self):
        """Verifica que el servicio responde antes de ejecutar una prueba."""
        try:
            response = self.client.list()
        except RequestTimeout as e:
            logger.error(f"API server did not answer: {e}")
            raise ServiceUnavailable("API server is not available") from e
        if response.status_code != codes.OK:
            logger.error(f"API server is not responding: {response.status_code} {response.text[:200]}")
            raise ServiceUnavailable(f"API server is not available (status {response.status_code})")

    # Lectura

    def list_mercados(self):
        """GET /mercado: lista de mercados con los campos y tipos del modelo."""
        response = self.client.list()
        self._expect(response, codes.OK, json_body=True)
        expect_json_schema(response, schemas.mercado_list)
        return response.body

    def check_catalog(self, categories=CATALOG_CATEGORIES):
        """El primer mercado expone las categorías de productos como listas."""
        response = self.client.list()
        self._expect(response, codes.OK, json_body=True)
        expect_json_path(response, "[0].produtos", {category: list for category in categories})
        return response.body[0]["produtos"]

    def check_catalog_value(self, path, expected):
        """Compara un valor del listado resuelto por ruta, p.ej. `[0].produtos.peixaria[0].peixes[0].preco`."""
        response = self.client.list()
        self._expect(response, codes.OK, json_body=True)
        expect_json_path(response, path, expected)

    def retrieve_mercado(self, mercado_id, expected=None):
        """GET /mercado/{id}: registro con exactamente los campos del modelo."""
        response = self.client.retrieve(mercado_id)
        self._expect(response, codes.OK, json_body=True)
        expect_json_schema(response, schemas.mercado)
        expect_json_like(response, {"id": mercado_id, **(expected or {})})
        return response.body

    def retrieve_missing(self, mercado_id=config.MISSING_MERCADO_ID):
        response = self.client.retrieve(mercado_id)
        self._expect(response, codes.NOT_FOUND)
        expect_json_like(response, {"message": NOT_FOUND_MESSAGE})
        return response

    def retrieve_malformed(self, segment=config.MALFORMED_MERCADO_ID):
        response = self.client.retrieve(segment)
        self._expect(response, codes.BAD_REQUEST)
        expect_json_like(response, {"message": str})
        return response

    def read_consistency(self, mercado_id, reads=config.CONSISTENCY_READS):
        """Varias lecturas concurrentes del mismo ID devuelven el mismo cuerpo."""
        responses = self.client.batch("GET", self.client.url(mercado_id), size=reads)
        for response in responses:
            self._expect(response, codes.OK)
        first = responses[0].body
        for response in responses[1:]:
            if response.body != first:
                raise ContractViolation(f"Inconsistent reads for mercado {mercado_id}: {first!r} != {response.body!r}", response)
        return first

    # Escritura

    def create_mercado(self, payload):
        """POST /mercado: 201 con ID asignado y los campos enviados."""
        response = self.client.create(payload)
        self._expect(response, codes.CREATED)
        expect_json_like(response, {"id": int, **payload})
        if response.body["id"] <= 0:
            raise ContractViolation(f"Assigned id must be positive, got {response.body['id']}", response)
        logger.info(f"Mercado {response.body['id']} created")
        return response.body

    def create_invalid(self, payload):
        response = self.client.create(payload)
        self._expect(response, codes.BAD_REQUEST)
        expect_json_like(response, {"message": str})
        return response

    def create_duplicate(self, payload):
        """Un CNPJ ya registrado produce conflicto con mensaje sobre el CNPJ."""
        response = self.client.create(payload)
        self._expect(response, codes.CONFLICT)
        expect_json_like(response, {"message": re.compile("CNPJ")})
        return response

    def update_mercado(self, mercado_id, payload):
        """PUT /mercado/{id}: confirmación y registro actualizado con el mismo ID."""
        response = self.client.update(mercado_id, payload)
        self._expect(response, codes.OK, json_body=True)
        expect_json_schema(response, schemas.updated_mercado)
        expect_json_like(response, {
            "message": f"Mercado com ID {mercado_id} atualizado com sucesso.",
            "updatedMercado": {"id": mercado_id, **payload},
        })
        return response.body["updatedMercado"]

    def update_missing(self, payload, mercado_id=config.MISSING_MERCADO_ID):
        response = self.client.update(mercado_id, payload)
        self._expect(response, codes.NOT_FOUND)
        expect_json_like(response, {"message": NOT_FOUND_MESSAGE})
        return response

    def update_invalid(self, mercado_id, payload):
        response = self.client.update(mercado_id, payload)
        self._expect(response, codes.BAD_REQUEST)
        expect_json_like(response, {"message": str})
        return response

    def verify_update_persisted(self, mercado_id, payload):
        """Después de actualizar, la lectura refleja los valores enviados."""
        before = self.retrieve_mercado(mercado_id)
        self.update_mercado(mercado_id, payload)
        after = self.retrieve_mercado(mercado_id, expected=payload)
        untouched = {k: v for k, v in before.items() if k not in payload}
        mismatch = match_like(after, untouched)
        if mismatch:
            raise ContractViolation(f"Update changed fields that were not submitted: {mismatch}")
        return after

    def delete_mercado(self, mercado_id):
        """DELETE /mercado/{id}: 200 con únicamente el mensaje de confirmación."""
        response = self.client.delete(mercado_id)
        self._expect(response, codes.OK, json_body=True)
        expect_json_schema(response, schemas.message)
        expect_json_like(response, {"message": f"Mercado com ID {mercado_id} foi removido com sucesso."})
        logger.info(f"Mercado {mercado_id} removed")
        return response

    def delete_missing(self, mercado_id=config.MISSING_MERCADO_ID):
        response = self.client.delete(mercado_id)
        self._expect(response, codes.NOT_FOUND)
        expect_json_like(response, {"message": NOT_FOUND_MESSAGE})
        return response

    def delete_malformed(self, segment=config.MALFORMED_MERCADO_ID):
        response = self.client.delete(segment)
        self._expect(response, codes.BAD_REQUEST)
        expect_json_like(response, {"message": str})
        return response

    def verify_deleted(self, mercado_id):
        """Eliminar y luego consultar el mismo ID reporta ausencia."""
        self.delete_mercado(mercado_id)
        response = self.client.retrieve(mercado_id)
        self._expect(response, codes.NOT_FOUND)

    def verify_double_delete(self, mercado_id):
        self.delete_mercado(mercado_id)
        self.delete_missing(mercado_id)

    # Rutas y métodos

    def unsupported_method(self):
        """DELETE sobre la colección no está permitido."""
        response = self.client.delete()
        self._expect(response, codes.METHOD_NOT_ALLOWED)
        return response

    def unknown_route(self, route=config.UNKNOWN_ROUTE):
        response = self.client.request("GET", f"{self.client.endpoint}/{route}")
        self._expect(response, codes.NOT_FOUND)
        return response

    # Resiliencia

    def expect_timeout(self, method, mercado_id=None, payload=None, timeout=config.SIMULATED_TIMEOUT):
        """Con un timeout extremo la petición debe fallar en el transporte."""
        url = self.client.url(mercado_id)
        try:
            response = self.client.request(method, url, json=payload, timeout=timeout)
        except RequestTimeout as e:
            return e
        raise ContractViolation(f"{method} {url} answered {response.status_code} within {timeout}s, expected a timeout", response)

    def rate_limit(self, method, mercado_id=None, payload=None, size=config.RATE_LIMIT_BATCH_SIZE, accepted=None):
        """
        Lote de peticiones idénticas en paralelo. Cada status debe estar en
        el conjunto aceptado y una creación o eliminación repetida solo puede
        tener éxito una vez; devuelve el conteo por status.
        """
        accepted = RATE_LIMIT_ACCEPTED[method] if accepted is None else accepted
        responses = self.client.batch(method, self.client.url(mercado_id), json=payload, size=size)
        statuses = Counter(response.status_code for response in responses)
        unexpected = {status: count for status, count in statuses.items() if status not in accepted}
        if unexpected:
            raise ContractViolation(f"Unexpected statuses under load for {method}: {unexpected} (accepted {sorted(accepted)})")
        single = RATE_LIMIT_SINGLE_SUCCESS.get(method)
        if single is not None and statuses[single] > 1:
            raise ContractViolation(f"{statuses[single]} identical {method} requests answered {single}, at most one may succeed")
        logger.info(f"Rate limit probe {method} x{size}: {dict(statuses)}")
        return statuses

    def unavailable_host(self, method, mercado_id=None, payload=None, base_url=config.UNAVAILABLE_BASE_URL):
        """Un host inalcanzable se reporta como error de servidor (>= 500)."""
        with MercadoClient(base_url, self.timeout) as client:
            response = client.request(method, client.url(mercado_id), json=payload)
        self._expect(response, lambda status: status >= codes.INTERNAL_SERVER_ERROR)
        return response

    def measure(self, operation, *args, **kwargs):
        """Mide el tiempo total de una operación y lo compara con el presupuesto."""
        start = time.perf_counter()
        operation(*args, **kwargs)
        duration = time.perf_counter() - start
        logger.info(f"Response time: {duration * 1000:.0f}ms")
        if duration >= self.timeout:
            raise ContractViolation(f"Operation took {duration:.3f}s, budget is {self.timeout}s")
        return duration

    def close(self):
        self.client.close()
