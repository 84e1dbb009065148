"""
Calculation error taxonomy.

Expected data problems (a rate that is not configured, an out-of-range
percentage) are raised as CalculationError subclasses by the calculation
core and returned to callers inside a CalculationResult.
"""
from typing import Any, Optional


class CalculationError(Exception):
    """Base class for errors that abort a calculation."""

    code = "calculation_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class MissingRateError(CalculationError):
    """A norm hour or correction factor needed by the calculation is not configured."""

    code = "missing_rate"

    def __init__(self, kind: str, key: str, scope: Optional[str] = None):
        if scope:
            message = f"No {kind} configured for '{key}' in scope '{scope}'"
        else:
            message = f"No {kind} configured for '{key}'"
        super().__init__(message)
        self.kind = kind
        self.key = key
        self.scope = scope

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({"kind": self.kind, "key": self.key, "scope": self.scope})
        return data


class InvalidInputError(CalculationError):
    """A quantity, percentage or identifier failed validation."""

    code = "invalid_input"

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(message)
        self.field = field
        self.value = value

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({"field": self.field, "value": None if self.value is None else str(self.value)})
        return data


class ReferenceDataError(CalculationError):
    """Reference tables are inconsistent (duplicate keys, non-positive factors)."""

    code = "reference_data"

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(message)
        self.errors = errors or []

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["errors"] = list(self.errors)
        return data
