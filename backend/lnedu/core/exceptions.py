# lnedu/core/exceptions.py


class DomainError(Exception):
    """Erro de regra de negócio; o handler em main.py converte em resposta HTTP."""
    status_code = 400

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(DomainError):
    status_code = 404


class PermissionDeniedError(DomainError):
    status_code = 403


class BusinessRuleError(DomainError):
    status_code = 400


class InvalidTransitionError(BusinessRuleError):
    """Mudança de status não permitida pela tabela de transições."""
    def __init__(self, entity: str, current: str, target: str, message: str | None = None):
        super().__init__(message or f"{entity}: transição {current} -> {target} não permitida")
        self.entity = entity
        self.current = current
        self.target = target


class GatewayError(DomainError):
    """
    Falha na chamada ao gateway de pagamento. Carrega a mensagem do provedor
    para devolver ao cliente (sem retry).
    """
    status_code = 400

    def __init__(self, message: str, *, upstream_status: int | None = None, payload: dict | None = None):
        super().__init__(message)
        self.upstream_status = upstream_status
        self.payload = payload or {}
