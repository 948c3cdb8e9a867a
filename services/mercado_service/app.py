from flask import Blueprint, Flask, current_app, request, jsonify
import argparse
import json
import logging
import math
import os
import re
import sqlite3
import time
from contextlib import closing
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter
from requests import codes
from mercado_contract.enums import FailureMode

logger = logging.getLogger(__name__)

# Ruta por defecto a la base de datos SQLite
DATABASE = os.getenv("MERCADO_DATABASE", "data/mercado.sqlite")

# Rutas administrativas que no pasan por latencia, rate limit ni modos de falla
ADMIN_ENDPOINTS = {"mercado.set_failure_mode", "mercado.get_failure_mode", "mercado.health_check"}

REQUIRED_FIELDS = ("nome", "cnpj", "endereco")
UPDATABLE_FIELDS = (*REQUIRED_FIELDS, "produtos")
CNPJ_PATTERN = re.compile(r"\d{14}")
# Segmentos en minúsculas se tratan como nombres de sub-ruta, no como IDs
ROUTE_NAME_PATTERN = re.compile(r"[a-z_]+")
# IDs mayores no caben en un INTEGER de SQLite y no pueden existir
SQLITE_MAX_INTEGER = 2 ** 63 - 1

# Mercado inicial con catálogo de productos
SEED_MERCADO = {
    "nome": "Supermercado Central",
    "cnpj": "92023163097306",
    "endereco": "Avenida Brasil, 1500",
    "produtos": {
        "hortifruit": [
            {"frutas": [{"nome": "Banana", "preco": 5}, {"nome": "Maçã", "preco": 8}]},
            {"legumes": [{"nome": "Cenoura", "preco": 4}]},
        ],
        "padaria": [
            {"doces": [{"nome": "Bolo de cenoura", "preco": 20}]},
            {"salgados": [{"nome": "Pão de queijo", "preco": 3}]},
        ],
        "acougue": [
            {"bovinos": [{"nome": "Picanha", "preco": 70}]},
            {"suinos": [{"nome": "Costela suína", "preco": 35}]},
            {"aves": [{"nome": "Frango inteiro", "preco": 18}]},
        ],
        "bebidas": [
            {"refrigerantes": [{"nome": "Guaraná", "preco": 7}]},
            {"sucos": [{"nome": "Suco de laranja", "preco": 9}]},
        ],
        "congelados": [
            {"sorvetes": [{"nome": "Sorvete de creme", "preco": 25}]},
        ],
        "peixaria": [
            {"peixes": [{"nome": "Salmão", "preco": 40}, {"nome": "Tilápia", "preco": 28}]},
            {"frutos_do_mar": [{"nome": "Camarão", "preco": 60}]},
        ],
    },
}

bp = Blueprint("mercado", __name__)


def create_app(**overrides):
    """Crea la aplicación del servicio de mercados e inicializa su base de datos."""
    app = Flask(__name__)
    app.config.update(
        DATABASE=DATABASE,
        LATENCY=0.0,
        SLOW_SECONDS=10,
        # Límite por cliente en notación de `limits`, p.ej. "50/second"
        RATE_LIMIT=None,
        FAILURE_MODE=FailureMode.NORMAL,
    )
    app.config.update(overrides)

    limit = app.config["RATE_LIMIT"]
    if limit:
        app.extensions["rate_limiter"] = (FixedWindowRateLimiter(MemoryStorage()), parse(limit))

    app.register_blueprint(bp)
    app.register_error_handler(codes.NOT_FOUND, route_not_found)
    app.register_error_handler(codes.METHOD_NOT_ALLOWED, method_not_allowed)
    app.register_error_handler(codes.INTERNAL_SERVER_ERROR, internal_error)

    init_db(app.config["DATABASE"])
    return app


def connect(database):
    # Las escrituras toman el lock de escritura al iniciar la transacción
    conn = sqlite3.connect(database, timeout=10, isolation_level="IMMEDIATE")
    conn.row_factory = sqlite3.Row
    return conn


def init_db(database):
    """Inicializa la base de datos SQLite si no existe y carga el mercado inicial."""
    directory = os.path.dirname(database)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with closing(connect(database)) as conn, conn:
        conn.execute('''CREATE TABLE IF NOT EXISTS mercados (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        nome TEXT NOT NULL,
                        cnpj TEXT NOT NULL UNIQUE,
                        endereco TEXT NOT NULL,
                        produtos TEXT NOT NULL DEFAULT '{}')''')
        total = conn.execute("SELECT COUNT(*) FROM mercados").fetchone()[0]
        if total == 0:
            conn.execute(
                "INSERT INTO mercados (nome, cnpj, endereco, produtos) VALUES (?, ?, ?, ?)",
                (SEED_MERCADO["nome"], SEED_MERCADO["cnpj"], SEED_MERCADO["endereco"],
                 json.dumps(SEED_MERCADO["produtos"])),
            )
            logger.info(f"Seeded mercado database at {database}")


def row_to_mercado(row):
    return {
        "id": row["id"],
        "nome": row["nome"],
        "cnpj": row["cnpj"],
        "endereco": row["endereco"],
        "produtos": json.loads(row["produtos"]),
    }


def validate_mercado(data, partial=False):
    """
    Valida el cuerpo de un mercado. Con `partial` solo se validan los
    campos presentes, pero al menos uno es obligatorio.
    Devuelve la lista de errores encontrados.
    """
    if not isinstance(data, dict):
        return ["O corpo da requisição deve ser um objeto JSON"]

    fields = [f for f in REQUIRED_FIELDS if f in data] if partial else list(REQUIRED_FIELDS)
    if partial and not any(f in data for f in UPDATABLE_FIELDS):
        return [f"Informe ao menos um dos campos: {', '.join(UPDATABLE_FIELDS)}"]

    errors = []
    for field in fields:
        value = data.get(field)
        if not isinstance(value, str) or not value.strip():
            errors.append(f"O campo '{field}' é obrigatório")
        elif field == "cnpj" and not CNPJ_PATTERN.fullmatch(value):
            errors.append("O campo 'cnpj' deve conter exatamente 14 dígitos numéricos")

    if "produtos" in data and not isinstance(data["produtos"], dict):
        errors.append("O campo 'produtos' deve ser um objeto")
    return errors


def parse_mercado_id(segment):
    """
    Interpreta el segmento de la ruta. Devuelve (id, None) para IDs numéricos
    o (None, respuesta de error) en otro caso.
    """
    if segment.isdecimal():
        if len(segment.lstrip("0")) > len(str(SQLITE_MAX_INTEGER)) or int(segment) > SQLITE_MAX_INTEGER:
            return None, not_found(segment)
        return int(segment), None
    if ROUTE_NAME_PATTERN.fullmatch(segment):
        return None, (jsonify({"message": f"Rota /mercado/{segment} not found"}), codes.NOT_FOUND)
    return None, (jsonify({"message": f"ID inválido: '{segment}' não é um número"}), codes.BAD_REQUEST)


def not_found(mercado_id):
    return jsonify({"message": f"Mercado com ID {mercado_id} not found"}), codes.NOT_FOUND


def duplicate_cnpj():
    return jsonify({"message": "Já existe um mercado cadastrado com este CNPJ"}), codes.CONFLICT


def route_not_found(error):
    return jsonify({"message": f"Rota {request.path} not found"}), codes.NOT_FOUND


def method_not_allowed(error):
    return jsonify({"message": f"Método {request.method} não permitido em {request.path}"}), codes.METHOD_NOT_ALLOWED


def internal_error(error):
    logger.error(f"Unhandled error on {request.method} {request.path}: {error}")
    return jsonify({"message": "Internal server error"}), codes.INTERNAL_SERVER_ERROR


@bp.before_app_request
def simulate_conditions():
    """Aplica latencia, rate limiting y el modo de falla actual."""
    if request.endpoint in ADMIN_ENDPOINTS:
        return None

    latency = current_app.config["LATENCY"]
    if latency:
        time.sleep(latency)

    rate_limit = current_app.extensions.get("rate_limiter")
    if rate_limit is not None:
        limiter, item = rate_limit
        if not limiter.hit(item, request.remote_addr):
            logger.warning(f"Rate limit exceeded for {request.remote_addr}")
            stats = limiter.get_window_stats(item, request.remote_addr)
            response = jsonify({"message": "Too many requests"})
            response.headers["Retry-After"] = str(max(1, math.ceil(stats.reset_time - time.time())))
            return response, codes.TOO_MANY_REQUESTS

    mode = current_app.config["FAILURE_MODE"]

    # Simular caída total
    if mode == FailureMode.DOWN:
        return jsonify({"message": "Service unavailable"}), codes.SERVICE_UNAVAILABLE

    # Simular respuestas erróneas
    if mode == FailureMode.ERROR:
        return jsonify({"message": "Internal server error"}), codes.INTERNAL_SERVER_ERROR

    # Simular lentitud
    if mode == FailureMode.SLOW:
        time.sleep(current_app.config["SLOW_SECONDS"])
    return None


@bp.route("/set_failure_mode", methods=["POST"])
def set_failure_mode():
    """Cambia el modo de fallas dinámicamente."""
    data = request.get_json(silent=True) or {}
    mode = str(data.get("mode", FailureMode.NORMAL)).upper()

    # Validar modo
    if hasattr(FailureMode, mode):
        current_app.config["FAILURE_MODE"] = getattr(FailureMode, mode)
        logger.info(f"Failure mode changed to: {current_app.config['FAILURE_MODE']}")
        return jsonify({
            "status": "success",
            "mode": current_app.config["FAILURE_MODE"]
        }), codes.OK
    else:
        return jsonify({"message": f"Invalid mode. Valid: {list(FailureMode)}"}), codes.BAD_REQUEST


@bp.route("/get_failure_mode", methods=["GET"])
def get_failure_mode():
    """Obtiene el modo actual de fallas."""
    return jsonify({"mode": current_app.config["FAILURE_MODE"]}), codes.OK


@bp.route("/mercado", methods=["GET"])
def list_mercados():
    """Devuelve todos los mercados almacenados."""
    with closing(connect(current_app.config["DATABASE"])) as conn:
        rows = conn.execute("SELECT * FROM mercados ORDER BY id").fetchall()
    return jsonify([row_to_mercado(row) for row in rows]), codes.OK


@bp.route("/mercado", methods=["POST"])
def create_mercado():
    """Crea un nuevo mercado; el ID lo asigna la base de datos."""
    data = request.get_json(silent=True)
    errors = validate_mercado(data)
    if errors:
        return jsonify({"message": "; ".join(errors)}), codes.BAD_REQUEST

    produtos = data.get("produtos", {})
    try:
        with closing(connect(current_app.config["DATABASE"])) as conn, conn:
            cursor = conn.execute(
                "INSERT INTO mercados (nome, cnpj, endereco, produtos) VALUES (?, ?, ?, ?)",
                (data["nome"], data["cnpj"], data["endereco"], json.dumps(produtos)),
            )
            mercado_id = cursor.lastrowid
    except sqlite3.IntegrityError:
        logger.info(f"Rejected duplicate cnpj {data['cnpj']}")
        return duplicate_cnpj()

    logger.info(f"Mercado {mercado_id} created")
    return jsonify({
        "id": mercado_id,
        "nome": data["nome"],
        "cnpj": data["cnpj"],
        "endereco": data["endereco"],
        "produtos": produtos,
    }), codes.CREATED


@bp.route("/mercado/<segment>", methods=["GET"])
def get_mercado(segment):
    mercado_id, error = parse_mercado_id(segment)
    if error:
        return error

    with closing(connect(current_app.config["DATABASE"])) as conn:
        row = conn.execute("SELECT * FROM mercados WHERE id = ?", (mercado_id,)).fetchone()
    if row is None:
        return not_found(mercado_id)
    return jsonify(row_to_mercado(row)), codes.OK


@bp.route("/mercado/<segment>", methods=["PUT"])
def update_mercado(segment):
    """Actualiza solo los campos enviados; el ID nunca cambia."""
    mercado_id, error = parse_mercado_id(segment)
    if error:
        return error

    data = request.get_json(silent=True)
    errors = validate_mercado(data, partial=True)
    if errors:
        return jsonify({"message": "; ".join(errors)}), codes.BAD_REQUEST

    changes = {field: data[field] for field in REQUIRED_FIELDS if field in data}
    if "produtos" in data:
        changes["produtos"] = json.dumps(data["produtos"])
    assignments = ", ".join(f"{field} = ?" for field in changes)
    try:
        with closing(connect(current_app.config["DATABASE"])) as conn, conn:
            cursor = conn.execute(
                f"UPDATE mercados SET {assignments} WHERE id = ?",
                (*changes.values(), mercado_id),
            )
            if cursor.rowcount == 0:
                return not_found(mercado_id)
            row = conn.execute("SELECT * FROM mercados WHERE id = ?", (mercado_id,)).fetchone()
    except sqlite3.IntegrityError:
        return duplicate_cnpj()

    mercado = row_to_mercado(row)
    del mercado["produtos"]
    return jsonify({
        "message": f"Mercado com ID {mercado_id} atualizado com sucesso.",
        "updatedMercado": mercado,
    }), codes.OK


@bp.route("/mercado/<segment>", methods=["DELETE"])
def delete_mercado(segment):
    mercado_id, error = parse_mercado_id(segment)
    if error:
        return error

    with closing(connect(current_app.config["DATABASE"])) as conn, conn:
        removed = conn.execute("DELETE FROM mercados WHERE id = ?", (mercado_id,)).rowcount
    if removed == 0:
        return not_found(mercado_id)

    logger.info(f"Mercado {mercado_id} removed")
    return jsonify({"message": f"Mercado com ID {mercado_id} foi removido com sucesso."}), codes.OK


HEALTH_STATUS = {
    FailureMode.NORMAL: codes.OK,
    FailureMode.SLOW: codes.GATEWAY_TIMEOUT,
    FailureMode.DOWN: codes.SERVICE_UNAVAILABLE,
    FailureMode.ERROR: codes.SERVICE_UNAVAILABLE,
}


@bp.route("/health", methods=["GET"])
def health_check():
    """Estado del servicio según el modo de falla; lo consulta el runner antes de cambiar el modo."""
    mode = current_app.config["FAILURE_MODE"]
    status = HEALTH_STATUS[mode]
    return jsonify({"service": "mercado_service", "mode": mode, "status": status}), status


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Local mercado service")
    parser.add_argument("--port", type=int, default=5005, help="Port to listen on")
    parser.add_argument("--rate-limit", default=None,
                        help="Per-client limit, e.g. '50/second'")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    app = create_app(RATE_LIMIT=args.rate_limit)
    app.run(debug=True, host="0.0.0.0", port=args.port)
