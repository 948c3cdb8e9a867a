import os
import socket
import threading
from contextlib import contextmanager

import pytest
from werkzeug.serving import make_server

from mercado_contract import config
from services.mercado_service import create_app

# Con MERCADO_BASE_URL definido las suites de contrato van contra la API real
LIVE_BASE_URL = os.getenv("MERCADO_BASE_URL")

# Latencia mínima del servicio local para que un timeout de 1ms siempre ocurra
STAND_IN_LATENCY = 0.01


@contextmanager
def serve_mercado(app):
    """Levanta la app en un hilo y devuelve su URL base."""
    server = make_server("127.0.0.1", 0, app, threaded=True)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_port}"
    finally:
        server.shutdown()
        thread.join()


def closed_port_url():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return f"http://127.0.0.1:{port}"


@pytest.fixture(scope="session")
def base_url(tmp_path_factory):
    if LIVE_BASE_URL:
        yield LIVE_BASE_URL.rstrip("/")
        return

    database = tmp_path_factory.mktemp("mercado") / "mercado.sqlite"
    app = create_app(DATABASE=str(database), LATENCY=STAND_IN_LATENCY)
    with serve_mercado(app) as url:
        yield url


@pytest.fixture(scope="session")
def unavailable_url():
    if LIVE_BASE_URL:
        return config.UNAVAILABLE_BASE_URL
    return closed_port_url()
