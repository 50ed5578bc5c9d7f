"""Error kinds raised by the pricing services."""


class PricingError(Exception):
    """Base class for errors surfaced to callers of the pricing services."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(PricingError):
    """Route, price or stop combination could not be found."""

    status_code = 404


class ConflictError(PricingError):
    """Write would break a catalog uniqueness rule."""

    status_code = 409


class InvalidInputError(PricingError):
    """Input is well-formed but semantically invalid."""

    status_code = 422
