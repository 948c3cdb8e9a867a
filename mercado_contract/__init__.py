"""Verificación de contrato del recurso HTTP /mercado."""

from .client import ApiResponse, MercadoClient
from .exceptions import ContractError, ContractViolation, RequestTimeout, ServiceUnavailable
from .verifier import MercadoContractVerifier

__all__ = [
    "ApiResponse",
    "ContractError",
    "ContractViolation",
    "MercadoClient",
    "MercadoContractVerifier",
    "RequestTimeout",
    "ServiceUnavailable",
]
