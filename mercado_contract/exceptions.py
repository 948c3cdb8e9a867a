class ContractError(Exception):
    """Base de los errores del verificador de contrato."""


class ContractViolation(ContractError, AssertionError):
    """La respuesta no cumple lo esperado por el contrato."""

    def __init__(self, message, response=None):
        super().__init__(message)
        self.response = response


class RequestTimeout(ContractError):
    """La petición no terminó dentro del timeout configurado."""

    def __init__(self, method, url, timeout):
        super().__init__(f"{method} {url} timed out after {timeout}s")
        self.method = method
        self.url = url
        self.timeout = timeout


class ServiceUnavailable(ContractError):
    """El servicio no respondió al chequeo previo de disponibilidad."""
