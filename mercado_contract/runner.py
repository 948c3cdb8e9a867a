"""
Ejecuta el protocolo completo de verificación contra un servicio y
resume el resultado de cada chequeo.
"""

import logging
import time
from dataclasses import dataclass

import requests
from requests import codes

from . import config
from .enums import CheckStatus, Operation
from .exceptions import ContractError, RequestTimeout
from .fixtures import mercado_invalido, novo_mercado
from .verifier import MercadoContractVerifier

logger = logging.getLogger(__name__)


@dataclass
class CheckResult:
    name: str
    operation: Operation
    status: CheckStatus
    duration: float
    detail: str = ""

    @property
    def passed(self):
        return self.status == CheckStatus.PASSED


class ContractRunner:
    def __init__(self, base_url=config.MERCADO_BASE_URL, timeout=config.REQUEST_TIMEOUT,
                 batch_size=config.RATE_LIMIT_BATCH_SIZE, unavailable_url=config.UNAVAILABLE_BASE_URL):
        self.base_url = base_url.rstrip("/")
        self.batch_size = batch_size
        self.unavailable_url = unavailable_url
        self.verifier = MercadoContractVerifier(self.base_url, timeout)
        self.results = []

    def stand_in_mode(self):
        """Modo de falla del servicio local, o None si base_url no es el servicio local."""
        try:
            response = requests.get(f"{self.base_url}/health", timeout=5)
            body = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"Health check failed: {e}")
            return None

        if not isinstance(body, dict) or body.get("service") != "mercado_service":
            logger.error(f"{self.base_url} is not the local mercado service")
            return None
        return body.get("mode")

    def set_failure_mode(self, mode):
        """Cambia el modo de fallas del servicio local de mercados."""
        current = self.stand_in_mode()
        if current is None:
            return False
        logger.info(f"Current failure mode: {current}")

        try:
            response = requests.post(
                f"{self.base_url}/set_failure_mode",
                json={"mode": mode},
                timeout=5
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Error setting failure mode: {e}")
            return False

        if response.status_code == codes.OK:
            print(f"Failure mode set to: {mode}")
            return True
        logger.error(f"Failed to set failure mode: {response.text}")
        return False

    def check(self, name, operation, func, *args, **kwargs):
        """Ejecuta un chequeo y registra su resultado sin detener la corrida."""
        start = time.perf_counter()
        try:
            value = func(*args, **kwargs)
            status, detail = CheckStatus.PASSED, ""
        except RequestTimeout as e:
            value, status, detail = None, CheckStatus.TIMEOUT, str(e)
        except ContractError as e:
            value, status, detail = None, CheckStatus.FAILED, str(e)
        except requests.exceptions.RequestException as e:
            value, status, detail = None, CheckStatus.ERROR, f"{type(e).__name__}: {e}"

        result = CheckResult(name, operation, status, time.perf_counter() - start, detail)
        self.results.append(result)
        label = "PASS" if result.passed else status.upper()
        print(f"[{label}] {name} ({result.duration * 1000:.0f}ms){' - ' + detail if detail else ''}")
        return value

    def run_all(self):
        """Recorre el ciclo de vida de un mercado y los casos de error."""
        v = self.verifier
        self.results = []

        print(f"\nVerifying mercado contract at {self.base_url}")
        self.check("API is available", Operation.LIST, v.ensure_available)
        if not self.results[-1].passed:
            return self.results

        self.check("List mercados", Operation.LIST, v.list_mercados)

        payload = novo_mercado()
        created = self.check("Create mercado", Operation.CREATE, v.create_mercado, payload)
        self.check("Reject invalid mercado", Operation.CREATE, v.create_invalid, mercado_invalido())
        if created:
            self.check("Reject duplicate CNPJ", Operation.CREATE, v.create_duplicate,
                       novo_mercado(cnpj=payload["cnpj"]))

        self.check("Retrieve unknown id", Operation.RETRIEVE, v.retrieve_missing)
        self.check("Retrieve malformed id", Operation.RETRIEVE, v.retrieve_malformed)
        self.check("Update unknown id", Operation.UPDATE, v.update_missing, novo_mercado())
        self.check("Delete unknown id", Operation.DELETE, v.delete_missing)
        self.check("Delete malformed id", Operation.DELETE, v.delete_malformed)
        self.check("Collection rejects DELETE", Operation.UNSUPPORTED_METHOD, v.unsupported_method)
        self.check("Unknown route", Operation.UNKNOWN_ROUTE, v.unknown_route)
        self.check("Timeout is reported by transport", Operation.LIST, v.expect_timeout, "GET")
        self.check("Unavailable host reports 5xx", Operation.LIST, v.unavailable_host, "GET",
                   base_url=self.unavailable_url)

        if created:
            mercado_id = created["id"]
            self.check("Retrieve mercado", Operation.RETRIEVE, v.retrieve_mercado, mercado_id, payload)
            self.check("Update persists", Operation.UPDATE, v.verify_update_persisted, mercado_id, novo_mercado())
            self.check("Reject invalid update", Operation.UPDATE, v.update_invalid, mercado_id, mercado_invalido())
            self.check("Consistent reads", Operation.RETRIEVE, v.read_consistency, mercado_id)
            self.check("Rate limit on GET", Operation.RETRIEVE, v.rate_limit, "GET", mercado_id,
                       size=self.batch_size)
            self.check("Delete then lookup reports absence", Operation.DELETE, v.verify_deleted, mercado_id)
            self.check("Second delete reports not found", Operation.DELETE, v.delete_missing, mercado_id)

        return self.results

    def summary(self):
        passed = sum(1 for result in self.results if result.passed)
        print(f"\nSummary: {passed}/{len(self.results)} checks passed")
        return passed == len(self.results)

    def close(self):
        self.verifier.close()
