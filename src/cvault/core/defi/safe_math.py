"""
Checked uint256 arithmetic for vault accounting.

Every value handled by the vault is an unsigned 256-bit integer in token
base units. Python ints never overflow, so the range is enforced here and
violations raise PrecisionError instead of wrapping or going negative.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from ..vault_exceptions import PrecisionError

MAX_UINT256 = 2**256 - 1
MAX_UINT32 = 2**32 - 1

BASIS_POINTS = 10_000
WAD = 10**18


class SafeMath:
    """Static helpers for checked integer arithmetic."""

    @staticmethod
    def require_uint(value: int, name: str = "value", max_value: int = MAX_UINT256) -> int:
        """Return value if it is an int within [0, max_value]."""
        if isinstance(value, bool) or not isinstance(value, int):
            raise PrecisionError(f"{name} must be an integer, got {type(value).__name__}")
        if value < 0:
            raise PrecisionError(f"{name} underflow: {value} < 0")
        if value > max_value:
            raise PrecisionError(f"{name} overflow: {value} > {max_value}")
        return value

    @staticmethod
    def safe_add(a: int, b: int, max_value: int = MAX_UINT256, name: str = "sum") -> int:
        result = a + b
        if result > max_value:
            raise PrecisionError(f"{name} overflow: {a} + {b} > {max_value}")
        return result

    @staticmethod
    def safe_sub(a: int, b: int, name: str = "difference") -> int:
        if b > a:
            raise PrecisionError(f"{name} underflow: {a} - {b} < 0")
        return a - b

    @staticmethod
    def safe_mul(a: int, b: int, max_value: int = MAX_UINT256, name: str = "product") -> int:
        result = a * b
        if result > max_value:
            raise PrecisionError(f"{name} overflow: {a} * {b} > {max_value}")
        return result

    @staticmethod
    def safe_div(a: int, b: int, name: str = "quotient") -> int:
        """Truncating division; a zero divisor is fatal."""
        if b == 0:
            raise PrecisionError(f"{name}: division by zero")
        return a // b

    @staticmethod
    def mul_div(a: int, b: int, denominator: int, round_up: bool = False, name: str = "mul_div") -> int:
        """Compute a * b / denominator with a checked product."""
        product = SafeMath.safe_mul(a, b, name=name)
        quotient = SafeMath.safe_div(product, denominator, name=name)
        if round_up and product % denominator:
            quotient += 1
        return quotient

    @staticmethod
    def percentage(value: int, bps: int) -> int:
        """Apply a basis-point rate to value, truncating."""
        return SafeMath.mul_div(value, bps, BASIS_POINTS, name="percentage")


def parse_amount(value: object, name: str = "amount") -> int:
    """
    Parse a human-written token amount into an exact integer.

    Accepts ints, digit strings with ``_`` separators, hex strings and
    scientific notation such as ``"1e18"`` or ``"2.5e18"``. The result must
    be a whole, in-range uint256.
    """
    if isinstance(value, bool):
        raise PrecisionError(f"{name} must be a number, got a boolean")
    if isinstance(value, int):
        return SafeMath.require_uint(value, name)

    text = str(value).strip().replace("_", "")
    if text.lower().startswith("0x"):
        try:
            return SafeMath.require_uint(int(text, 16), name)
        except ValueError:
            raise PrecisionError(f"{name} is not a valid hex amount: {value!r}") from None
    try:
        parsed = Decimal(text)
    except InvalidOperation:
        raise PrecisionError(f"{name} is not a valid amount: {value!r}") from None
    if not parsed.is_finite() or parsed != parsed.to_integral_value():
        raise PrecisionError(f"{name} must be a whole number of base units: {value!r}")
    return SafeMath.require_uint(int(parsed), name)
