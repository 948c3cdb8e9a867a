import pytest

from mercado_contract import MercadoContractVerifier, config
from mercado_contract.fixtures import novo_mercado


@pytest.fixture(scope="module")
def verifier(request, base_url):
    """Verificador con el presupuesto de tiempo definido por cada suite (TIMEOUT)."""
    timeout = getattr(request.module, "TIMEOUT", config.REQUEST_TIMEOUT)
    verifier = MercadoContractVerifier(base_url, timeout=timeout)
    yield verifier
    verifier.close()


@pytest.fixture(autouse=True)
def api_disponivel(verifier):
    # Verifica si el servidor está respondiendo antes de cada test
    verifier.ensure_available()


@pytest.fixture(scope="module")
def created_mercado(verifier):
    """Mercado creado una vez por suite y eliminado al terminar."""
    payload = novo_mercado()
    mercado = verifier.create_mercado(payload)
    yield mercado
    verifier.client.delete(mercado["id"])


@pytest.fixture
def fresh_mercado(verifier):
    """Mercado nuevo para cada test que lo consume."""
    mercado = verifier.create_mercado(novo_mercado())
    yield mercado
    verifier.client.delete(mercado["id"])
