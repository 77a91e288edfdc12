"""Failure taxonomy for supplier imports.

ImportFailure subclasses are terminal for a whole import and map onto a
caller-facing error body. StrategyError is soft: it only ends one strategy.
"""


class ImportFailure(Exception):
    """Terminal import failure surfaced to the caller."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_body(self) -> dict:
        return {"error": self.message}


class UnsupportedSupplier(ImportFailure):
    status_code = 400

    def __init__(self, url: str, supported: list[str] | None = None, reason: str | None = None):
        if reason:
            message = reason
        elif supported:
            message = f"Unsupported supplier. Currently supporting: {', '.join(supported)}"
        else:
            message = f"Unsupported supplier URL: {url}"
        super().__init__(message)
        self.url = url


class RateLimited(ImportFailure):
    status_code = 429

    def __init__(self, collaborator: str, retry_after: int):
        super().__init__(
            f"Rate limit reached on {collaborator}. Please wait {retry_after} seconds and try again."
        )
        self.collaborator = collaborator
        self.retry_after = retry_after

    def to_body(self) -> dict:
        return {"error": self.message, "retry_after": self.retry_after}


class ValidationFailure(ImportFailure):
    status_code = 422

    def __init__(self, missing: list[str]):
        if len(missing) > 1:
            fields = ", ".join(missing[:-1]) + f" and {missing[-1]}"
        else:
            fields = missing[0] if missing else "required fields"
        super().__init__(f"Failed to extract required product information: {fields} missing")
        self.missing = missing

    def to_body(self) -> dict:
        return {"error": self.message, "missing": self.missing}


class StrategyError(Exception):
    """Soft failure inside one strategy: network fault, non-2xx, malformed payload."""
