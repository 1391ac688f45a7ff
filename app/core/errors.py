class BusinessRuleError(Exception):
    """Violación de una regla de negocio. La API la responde como 400."""

    status = 400
    default_code = "business_rule"

    def __init__(self, message, code=None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class ConflictError(BusinessRuleError):
    """Duplicados o inventario con ventas activas."""

    status = 409
    default_code = "conflict"


class InvalidTransitionError(BusinessRuleError):
    default_code = "invalid_transition"
