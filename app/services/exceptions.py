# app/services/exceptions.py

class ServiceError(Exception):
    """Clase base para errores de la capa de servicio."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class DomainValidationError(ServiceError):
    """Entrada de dominio inválida (identificadores mal formados, cantidades < 1)."""
    pass


class ResourceNotFoundError(ServiceError):
    """Recurso no encontrado: producto, línea del carrito, cupón, dirección."""
    pass


class ConflictError(ServiceError):
    """Conflicto de estado: stock insuficiente o escritura concurrente."""
    pass


class BusinessRuleError(ServiceError):
    """Regla de negocio incumplida (p.ej. compra mínima de un cupón)."""
    pass
