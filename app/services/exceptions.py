# app/services/exceptions.py

class ServiceError(Exception):
    """Clase base para errores de la capa de servicio."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class DomainValidationError(ServiceError):
    """Entrada de dominio inválida."""
    pass


class ResourceNotFoundError(ServiceError):
    """Recurso no encontrado."""
    pass


class ConflictError(ServiceError):
    """Conflicto de estado en la operación."""
    pass


class InsufficientBalanceError(ServiceError):
    """Lanzada cuando se intenta canjear más puntos de los disponibles."""

    def __init__(self, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__(f"insufficient_points: requested {requested}, available {available}")


class NotEligibleError(ServiceError):
    """Lanzada cuando el control de elegibilidad rechaza un giro; `rule` indica la regla fallida."""

    def __init__(self, rule: str, detail: str | None = None):
        self.rule = rule
        super().__init__(detail or f"not_eligible: {rule}")


class NoActiveSlotsError(ServiceError):
    """La ruleta no tiene slots activos con peso efectivo positivo."""
    pass


class InvalidTriggerError(DomainValidationError):
    """Definición de insignia sin un trigger utilizable."""
    pass
