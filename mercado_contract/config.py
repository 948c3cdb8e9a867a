"""
Configuración del verificador de contrato. Cada valor puede
sobrescribirse con una variable de entorno.
"""

import os

# URL del servicio bajo prueba
MERCADO_BASE_URL = os.getenv("MERCADO_BASE_URL", "https://api-desafio-qa.onrender.com")
MERCADO_PATH = "/mercado"

# Host que nunca resuelve (.invalid está reservado)
UNAVAILABLE_BASE_URL = os.getenv("MERCADO_UNAVAILABLE_URL", "https://api-invalid-endpoint.invalid")

# Presupuesto de tiempo por petición, en segundos
REQUEST_TIMEOUT = float(os.getenv("MERCADO_TIMEOUT", "10"))

# Timeout extremo usado para simular un timeout del servidor
SIMULATED_TIMEOUT = 0.001

# Tamaño del lote concurrente para probar rate limiting
RATE_LIMIT_BATCH_SIZE = int(os.getenv("MERCADO_BATCH_SIZE", "50"))

# Conexiones reutilizables por sesión HTTP
POOL_SIZE = 100

# Lecturas concurrentes para verificar consistencia
CONSISTENCY_READS = 5

MISSING_MERCADO_ID = 999999
MALFORMED_MERCADO_ID = "invalidId"
UNKNOWN_ROUTE = "naoexiste"
