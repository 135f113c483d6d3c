class DomainException(Exception):
    pass


class InvalidMatchDataException(DomainException):
    pass


class InsufficientDataException(DomainException):
    """Raised when a batch is too small to be meaningfully evaluated."""

    def __init__(self, available: int, required: int, message: str = None):
        self.available = available
        self.required = required
        super().__init__(
            message
            or f"Insufficient data: {available} matches available, "
            f"more than {required} required"
        )


class ConfigurationError(DomainException):
    pass
