"""Typed failures raised by ingestion and analytics."""


class BasketError(Exception):
    """Base class for Basket Insights failures."""

    error_code = "BASKET_ERROR"


class ValidationFailure(BasketError):
    """Raised when a purchase item is missing or has invalid required fields."""

    error_code = "VALIDATION_FAILED"

    def __init__(
        self,
        item_index: int | None,
        missing_fields: list[str] | None = None,
        invalid_fields: list[str] | None = None,
        message: str | None = None,
    ):
        self.item_index = item_index
        self.missing_fields = missing_fields or []
        self.invalid_fields = invalid_fields or []
        super().__init__(message or self._describe())

    def _describe(self) -> str:
        parts = []
        if self.missing_fields:
            parts.append(f"missing {', '.join(self.missing_fields)}")
        if self.invalid_fields:
            parts.append(f"invalid {', '.join(self.invalid_fields)}")
        detail = "; ".join(parts) or "invalid item"
        return f"Item {self.item_index}: {detail}"

    def to_dict(self) -> dict:
        return {
            "item_index": self.item_index,
            "missing_fields": self.missing_fields,
            "invalid_fields": self.invalid_fields,
        }


class CatalogConflict(BasketError):
    """Raised when creating a catalog entry violates a uniqueness rule."""

    error_code = "CATALOG_CONFLICT"

    def __init__(self, scan_code: str, detail: str | None = None):
        self.scan_code = scan_code
        message = f"Catalog entry for scan code '{scan_code}' already exists"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class StorageUnavailable(BasketError):
    """Raised when the underlying store cannot be read or written."""

    error_code = "STORAGE_UNAVAILABLE"

    def __init__(self, operation: str, cause: Exception | None = None):
        self.operation = operation
        self.cause = cause
        message = f"Storage unavailable during {operation}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
