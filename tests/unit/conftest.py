from contextlib import ExitStack

import pytest

from services.mercado_service import create_app
from tests.conftest import STAND_IN_LATENCY, serve_mercado


@pytest.fixture
def app(tmp_path):
    return create_app(DATABASE=str(tmp_path / "mercado.sqlite"))


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def stand_in(tmp_path):
    """Fábrica que levanta un servicio local con la configuración indicada."""
    stack = ExitStack()

    def start(**overrides):
        overrides.setdefault("DATABASE", str(tmp_path / "stand_in.sqlite"))
        overrides.setdefault("LATENCY", STAND_IN_LATENCY)
        return stack.enter_context(serve_mercado(create_app(**overrides)))

    with stack:
        yield start
