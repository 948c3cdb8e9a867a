from enum import StrEnum

class Operation(StrEnum):
    LIST = "list"
    CREATE = "create"
    RETRIEVE = "retrieve"
    UPDATE = "update"
    DELETE = "delete"
    UNSUPPORTED_METHOD = "unsupported_method"
    UNKNOWN_ROUTE = "unknown_route"

class CheckStatus(StrEnum):
    PASSED = "passed"      # Cumple el contrato
    FAILED = "failed"      # Alguna expectativa no se cumplió
    TIMEOUT = "timeout"    # La petición superó el presupuesto de tiempo
    ERROR = "error"        # Error inesperado del verificador

class FailureMode(StrEnum):
    NORMAL = "normal"      # Responde según el contrato
    SLOW = "slow"          # Responde después de una espera
    DOWN = "down"          # 503 en todas las rutas del recurso
    ERROR = "error"        # 500 en todas las rutas del recurso
