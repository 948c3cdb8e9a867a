"""
Expectativas sobre respuestas HTTP.

Cada función lanza ContractViolation con un mensaje que incluye la
petición y el cuerpo recibido cuando la expectativa no se cumple.
"""

import re
from collections.abc import Callable, Collection, Mapping

import jsonschema
from jsonschema.exceptions import ValidationError

from .exceptions import ContractViolation

_PATH_TOKEN = re.compile(r"\[(\d+)\]|\.?([^.\[\]]+)")


def _describe(response):
    return f"{response.method} {response.url} -> {response.status_code}: {response.text[:500]}"


def _matches_type(value, expected):
    # bool es subclase de int pero no es un número válido en el contrato
    if expected in (int, float) and isinstance(value, bool):
        return False
    if expected is float:
        return isinstance(value, (int, float))
    return isinstance(value, expected)


def expect_status(response, expected):
    """`expected` puede ser un código, un conjunto de códigos o un predicado."""
    if callable(expected):
        ok = expected(response.status_code)
    elif isinstance(expected, Collection):
        ok = response.status_code in expected
    else:
        ok = response.status_code == expected
    if not ok:
        raise ContractViolation(f"Unexpected status {response.status_code} (expected {expected!r}) for {_describe(response)}", response)


def expect_response_time(response, budget):
    if response.elapsed >= budget:
        raise ContractViolation(f"Response took {response.elapsed:.3f}s, budget is {budget}s for {_describe(response)}", response)


def expect_header(response, name, pattern):
    value = response.headers.get(name)
    if value is None or not re.search(pattern, value):
        raise ContractViolation(f"Header {name!r}={value!r} does not match {pattern!r} for {_describe(response)}", response)


def match_like(actual, expected, path="$"):
    """
    Comparación parcial al estilo "json like": los dicts esperados deben
    estar contenidos en los reales, cada elemento de una lista esperada
    debe coincidir con algún elemento real, un tipo verifica isinstance,
    un patrón regex se busca en el texto y un callable actúa de predicado.
    Devuelve None si coincide o la descripción de la primera diferencia.
    """
    if isinstance(expected, type):
        if _matches_type(actual, expected):
            return None
        return f"{path}: expected {expected.__name__}, got {type(actual).__name__} {actual!r}"

    if isinstance(expected, re.Pattern):
        if isinstance(actual, str) and expected.search(actual):
            return None
        return f"{path}: {actual!r} does not match /{expected.pattern}/"

    if isinstance(expected, Callable):
        return None if expected(actual) else f"{path}: {actual!r} rejected by {expected!r}"

    if isinstance(expected, Mapping):
        if not isinstance(actual, Mapping):
            return f"{path}: expected object, got {type(actual).__name__}"
        for key, value in expected.items():
            if key not in actual:
                return f"{path}.{key}: missing"
            mismatch = match_like(actual[key], value, f"{path}.{key}")
            if mismatch:
                return mismatch
        return None

    if isinstance(expected, list):
        if not isinstance(actual, list):
            return f"{path}: expected array, got {type(actual).__name__}"
        for index, item in enumerate(expected):
            if all(match_like(candidate, item) for candidate in actual):
                return f"{path}[{index}]: no element matches {item!r}"
        return None

    if actual != expected:
        return f"{path}: expected {expected!r}, got {actual!r}"
    return None


def expect_json_like(response, expected):
    mismatch = match_like(response.body, expected)
    if mismatch:
        raise ContractViolation(f"Body mismatch at {mismatch} for {_describe(response)}", response)


def _format_path(path):
    return "$" + "".join(f"[{part}]" if isinstance(part, int) else f".{part}" for part in path)


def expect_json_schema(response, schema):
    """Valida el cuerpo contra un JSON Schema (ver mercado_contract.schemas)."""
    try:
        jsonschema.validate(instance=response.body, schema=schema)
    except ValidationError as e:
        raise ContractViolation(
            f"Schema mismatch at {_format_path(e.absolute_path)}: {e.message} for {_describe(response)}", response
        ) from e


def json_path(body, path):
    """Resuelve rutas como `[0].produtos.peixaria[0].peixes[0].preco`."""
    current = body
    for index, key in _PATH_TOKEN.findall(path):
        try:
            current = current[int(index)] if index else current[key]
        except (KeyError, IndexError, TypeError) as e:
            raise ContractViolation(f"Path {path!r} not found in body ({e!r})") from e
    return current


def expect_json_path(response, path, expected):
    value = json_path(response.body, path)
    mismatch = match_like(value, expected, path)
    if mismatch:
        raise ContractViolation(f"Value mismatch at {mismatch} for {_describe(response)}", response)
