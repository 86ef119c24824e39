"""Currency -- ISO 4217 registry and minor-unit rounding for loan amounts."""

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    """Information about a single ISO 4217 currency."""

    code: str
    decimal_places: int
    name: str

    @property
    def minor_unit(self) -> Decimal:
        """Smallest representable amount (one centavo for MXN)."""
        if self.decimal_places == 0:
            return Decimal("1")
        return Decimal("0." + "0" * (self.decimal_places - 1) + "1")

    @property
    def quantize_string(self) -> str:
        """String for Decimal.quantize() to round to this currency's precision."""
        if self.decimal_places == 0:
            return "1"
        return "0." + "0" * self.decimal_places


class CurrencyRegistry:
    """Registry of the ISO 4217 currencies the lending book operates in."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        # Operating currencies
        "MXN": CurrencyInfo("MXN", 2, "Mexican Peso"),
        "USD": CurrencyInfo("USD", 2, "US Dollar"),
        "GTQ": CurrencyInfo("GTQ", 2, "Guatemalan Quetzal"),
        "HNL": CurrencyInfo("HNL", 2, "Honduran Lempira"),
        "NIO": CurrencyInfo("NIO", 2, "Nicaraguan Cordoba"),
        "CRC": CurrencyInfo("CRC", 2, "Costa Rican Colon"),
        "COP": CurrencyInfo("COP", 2, "Colombian Peso"),
        "PEN": CurrencyInfo("PEN", 2, "Peruvian Sol"),
        "BOB": CurrencyInfo("BOB", 2, "Bolivian Boliviano"),
        "DOP": CurrencyInfo("DOP", 2, "Dominican Peso"),
        "EUR": CurrencyInfo("EUR", 2, "Euro"),
        # Zero decimal currencies
        "CLP": CurrencyInfo("CLP", 0, "Chilean Peso"),
        "PYG": CurrencyInfo("PYG", 0, "Paraguayan Guarani"),
        "XOF": CurrencyInfo("XOF", 0, "West African CFA Franc"),
        "UGX": CurrencyInfo("UGX", 0, "Ugandan Shilling"),
        # Three decimal currencies
        "KWD": CurrencyInfo("KWD", 3, "Kuwaiti Dinar"),
        "BHD": CurrencyInfo("BHD", 3, "Bahraini Dinar"),
    }

    # Default decimal places for unknown currencies
    DEFAULT_DECIMAL_PLACES: ClassVar[int] = 2

    @classmethod
    def is_valid(cls, code: str) -> bool:
        """Check if a currency code is registered."""
        if not code or not isinstance(code, str):
            return False
        return code.upper().strip() in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        """Get currency information by code."""
        if not code or not isinstance(code, str):
            return None
        return cls._CURRENCIES.get(code.upper().strip())

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        """Get decimal places for a currency."""
        info = cls.get_info(code)
        return info.decimal_places if info else cls.DEFAULT_DECIMAL_PLACES

    @classmethod
    def get_minor_unit(cls, code: str) -> Decimal:
        """Get the minor unit (smallest coin) for a currency."""
        info = cls.get_info(code)
        if info:
            return info.minor_unit
        return Decimal("0." + "0" * (cls.DEFAULT_DECIMAL_PLACES - 1) + "1")

    @classmethod
    def validate(cls, code: str) -> str:
        """Validate and normalize a currency code."""
        if not code or not isinstance(code, str):
            raise ValueError(f"Invalid currency code: {code!r}")

        normalized = code.upper().strip()

        if len(normalized) != 3:
            raise ValueError(f"Currency code must be 3 characters: {code!r}")

        if normalized not in cls._CURRENCIES:
            raise ValueError(f"Invalid ISO 4217 currency code: {code!r}")

        return normalized

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        """Get all valid currency codes."""
        return frozenset(cls._CURRENCIES.keys())
