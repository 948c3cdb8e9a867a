"""Generación de datos aleatorios para crear y actualizar mercados."""

import random
import string
import uuid

PREFIXES = ["Mercado", "Supermercado", "Empório", "Atacadão", "Mercearia", "Hortifruti"]
NAMES = ["Bom Preço", "São Jorge", "Estrela", "Vila Nova", "Central", "Familiar", "Popular"]
STREETS = ["Rua das Flores", "Avenida Paulista", "Rua XV de Novembro", "Avenida Atlântica",
           "Rua Augusta", "Travessa do Comércio", "Alameda Santos"]


def random_cnpj():
    """CNPJ de 14 dígitos numéricos, sin validar dígitos verificadores."""
    return "".join(random.choices(string.digits, k=14))


def random_nome():
    return f"{random.choice(PREFIXES)} {random.choice(NAMES)} {uuid.uuid4().hex[:6]}"


def random_endereco():
    return f"{random.choice(STREETS)}, {random.randint(1, 9999)}"


def novo_mercado(**overrides):
    """Payload válido para crear o actualizar un mercado."""
    mercado = {
        "nome": random_nome(),
        "cnpj": random_cnpj(),
        "endereco": random_endereco(),
    }
    mercado.update(overrides)
    return mercado


def mercado_invalido():
    """Payload con nombre vacío y CNPJ mal formado."""
    return {
        "nome": "",
        "cnpj": "123",
        "endereco": "",
    }
