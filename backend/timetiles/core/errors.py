class ParseError(Exception):
    """Raised when raw file bytes cannot be turned into rows."""


class ImportValidationError(Exception):
    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors) if errors else "Validation failed")


class JobContextError(Exception):
    """Job context is missing the db session or a required identifier."""


class SchemaCreationError(Exception):
    pass


class StageTransitionError(Exception):
    pass


class FetchError(Exception):
    """Remote fetch failure; ``kind`` decides whether the attempt is retried."""

    RETRYABLE_KINDS = ("timeout", "network", "http")

    def __init__(self, message: str, kind: str = "network", status_code: int | None = None):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        if self.kind not in self.RETRYABLE_KINDS:
            return False
        if self.kind == "http" and self.status_code is not None:
            return self.status_code >= 500 or self.status_code in (408, 429)
        return True


class QuotaExceededError(FetchError):
    def __init__(self, message: str):
        super().__init__(message, kind="quota")
