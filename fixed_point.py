"""
Checked fixed-point arithmetic for the share-class NAV calculator.

All monetary and share quantities are non-negative integers scaled by
10**decimals. Every operation here is checked against a 256-bit word:
- Unsigned results must stay within [0, 2**256 - 1]
- Signed results (only the period gain/loss) must stay within
  [-2**255, 2**255 - 1]
- Division truncates toward zero and never divides by zero silently

Any violation raises a FixedPointError subclass and aborts the calculation.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, localcontext
from typing import Union


UINT256_MAX = 2 ** 256 - 1
INT256_MIN = -(2 ** 255)
INT256_MAX = 2 ** 255 - 1


class FixedPointError(ArithmeticError):
    """Base class for fixed-point arithmetic failures."""


class ArithmeticOverflowError(FixedPointError, OverflowError):
    """Result exceeds the representable range."""


class ArithmeticUnderflowError(FixedPointError):
    """Unsigned subtraction would go below zero."""


class DivisionByZeroError(FixedPointError, ZeroDivisionError):
    """Divisor is zero."""


def require_uint(value: int, name: str = 'value') -> int:
    # bool is an int subclass; reject it so True/False never sneak in as amounts
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")
    if value > UINT256_MAX:
        raise ArithmeticOverflowError(f"{name} exceeds uint256: {value}")
    return value


def add(a: int, b: int) -> int:
    """Checked unsigned addition."""
    result = require_uint(a, 'a') + require_uint(b, 'b')
    if result > UINT256_MAX:
        raise ArithmeticOverflowError(f"{a} + {b} overflows uint256")
    return result


def sub(a: int, b: int) -> int:
    """Checked unsigned subtraction. Fails rather than clamping at zero."""
    require_uint(a, 'a')
    require_uint(b, 'b')
    if b > a:
        raise ArithmeticUnderflowError(f"{a} - {b} underflows zero")
    return a - b


def mul(a: int, b: int) -> int:
    """Checked unsigned multiplication."""
    result = require_uint(a, 'a') * require_uint(b, 'b')
    if result > UINT256_MAX:
        raise ArithmeticOverflowError(f"{a} * {b} overflows uint256")
    return result


def div(a: int, b: int) -> int:
    """Unsigned division truncating toward zero."""
    require_uint(a, 'a')
    require_uint(b, 'b')
    if b == 0:
        raise DivisionByZeroError(f"division of {a} by zero")
    return a // b


def signed_sub(a: int, b: int) -> int:
    """
    Signed subtraction checked against the int256 range.

    Used for the period gain/loss, which is the only quantity allowed to
    be negative.
    """
    for name, value in (('a', a), ('b', b)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"{name} must be an integer, got {type(value).__name__}")
        if value < INT256_MIN or value > INT256_MAX:
            raise ArithmeticOverflowError(f"{name} outside int256: {value}")
    result = a - b
    if result < INT256_MIN or result > INT256_MAX:
        raise ArithmeticOverflowError(f"{a} - {b} overflows int256")
    return result


@dataclass(frozen=True)
class FixedPointScale:
    """
    Scale factor of a fixed-point amount.

    Attributes:
        decimals: Number of decimal places carried (scale = 10**decimals)
    """
    decimals: int

    def __post_init__(self):
        if isinstance(self.decimals, bool) or not isinstance(self.decimals, int):
            raise TypeError(f"decimals must be an integer, got {type(self.decimals).__name__}")
        if self.decimals < 0 or self.decimals > 77:
            raise ValueError(f"decimals must be between 0 and 77, got {self.decimals}")

    @property
    def scale(self) -> int:
        return 10 ** self.decimals

    def from_units(self, units: Union[str, int, Decimal]) -> int:
        """
        Convert a whole-unit amount (e.g. '1.07485') to its scaled integer.

        Floats are rejected; amounts needing more than `decimals` places
        cannot be represented exactly and raise ValueError.
        """
        if isinstance(units, float):
            raise TypeError("float amounts are not accepted; pass a string or Decimal")
        with localcontext() as ctx:
            ctx.prec = 100
            try:
                value = Decimal(str(units)) * self.scale
            except InvalidOperation:
                raise ValueError(f"Not a decimal amount: {units!r}")
            if not value.is_finite():
                raise ValueError(f"Not a finite amount: {units!r}")
            if value != value.to_integral_value():
                raise ValueError(f"{units} has more than {self.decimals} decimal places")
        return require_uint(int(value), 'amount')

    def to_decimal(self, value: int) -> Decimal:
        """Exact Decimal view of a scaled integer, for display only."""
        require_uint(value)
        with localcontext() as ctx:
            ctx.prec = 100
            return Decimal(value) / self.scale
