"""
Error types raised by the calculators and the request boundary.
"""


class CalculationError(ValueError):
    """Base class for calculation input problems"""


class InvalidInputError(CalculationError):
    """Unknown filing status, missing required field or out-of-range value"""


class MalformedNumberError(CalculationError):
    """Non-numeric text supplied for a numeric field"""

    def __init__(self, field: str, value):
        self.field = field
        self.value = value
        super().__init__(f"{field} must be a number, got {value!r}")


class DivisionByZeroError(CalculationError, ZeroDivisionError):
    """A rate was requested against a zero base amount"""
