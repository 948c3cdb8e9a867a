"""
JSON Schemas de las respuestas del recurso /mercado.
`additionalProperties: false` exige la forma exacta del cuerpo.
"""

mercado_fields = {
    "id": {"type": "integer", "minimum": 1},
    "nome": {"type": "string"},
    "cnpj": {"type": "string"},
    "endereco": {"type": "string"},
}

mercado = {
    "type": "object",
    "properties": {
        **mercado_fields,
        "produtos": {"type": "object"},
    },
    "required": ["id", "nome", "cnpj", "endereco", "produtos"],
    "additionalProperties": False,
}

# En el listado `produtos` es opcional y se toleran campos extra
mercado_list = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            **mercado_fields,
            "produtos": {"type": ["object", "null"]},
        },
        "required": ["id", "nome", "cnpj", "endereco"],
    },
}

updated_mercado = {
    "type": "object",
    "properties": {
        "message": {"type": "string"},
        "updatedMercado": {
            "type": "object",
            "properties": mercado_fields,
            "required": ["id", "nome", "cnpj", "endereco"],
            "additionalProperties": False,
        },
    },
    "required": ["message", "updatedMercado"],
    "additionalProperties": False,
}

message = {
    "type": "object",
    "properties": {
        "message": {"type": "string"},
    },
    "required": ["message"],
    "additionalProperties": False,
}
