"""
Currency name normalization.

Upstream systems report currencies as display names ("US Dollar",
"Pound Sterling") or ISO-4217 codes. The normalizer maps both to the
three-letter code; names it cannot resolve are passed through unchanged and
flagged for manual review.
"""

from collections.abc import Mapping
from types import MappingProxyType

from finsync.observability.logger import get_logger
from finsync.observability.metrics import currency_unresolved_total, increment_counter

logger = get_logger(__name__)

DEFAULT_CURRENCY_NAME = "US Dollar"

_DEFAULT_NAMES = {
    "US Dollar": "USD",
    "United States Dollar": "USD",
    "Euro": "EUR",
    "British Pound": "GBP",
    "Pound Sterling": "GBP",
    "Canadian Dollar": "CAD",
    "Australian Dollar": "AUD",
    "Japanese Yen": "JPY",
    "Swiss Franc": "CHF",
    "Swedish Krona": "SEK",
    "Norwegian Krone": "NOK",
    "Danish Krone": "DKK",
    "Chinese Yuan": "CNY",
    "Indian Rupee": "INR",
    "Brazilian Real": "BRL",
    "Mexican Peso": "MXN",
    "South African Rand": "ZAR",
    "Korean Won": "KRW",
    "Singapore Dollar": "SGD",
    "Hong Kong Dollar": "HKD",
    "New Zealand Dollar": "NZD",
    "Polish Zloty": "PLN",
    "Czech Koruna": "CZK",
    "Hungarian Forint": "HUF",
    "Israeli Shekel": "ILS",
    "Turkish Lira": "TRY",
    "Russian Ruble": "RUB",
    "Thai Baht": "THB",
    "Malaysian Ringgit": "MYR",
    "Philippine Peso": "PHP",
    "Indonesian Rupiah": "IDR",
    "Vietnamese Dong": "VND",
}


class CurrencyTable:
    """
    Immutable name -> ISO code mapping.

    Every code in the table also maps to itself, so normalizing an
    already-normalized value is a no-op.
    """

    def __init__(self, entries: Mapping[str, str]):
        table: dict[str, str] = {}
        for name, code in entries.items():
            code = code.strip().upper()
            if len(code) != 3 or not code.isalpha():
                raise ValueError(f"Invalid ISO-4217 code {code!r} for currency {name!r}")
            table[name] = code
        for code in set(table.values()):
            table.setdefault(code, code)

        self._entries = MappingProxyType(table)
        self._lowered = MappingProxyType({name.lower(): code for name, code in table.items()})

    @classmethod
    def default(cls) -> "CurrencyTable":
        """Table of the currencies seen in ERP payloads."""
        return cls(_DEFAULT_NAMES)

    def extend(self, entries: Mapping[str, str]) -> "CurrencyTable":
        """Return a new table with extra entries; later entries win."""
        merged = dict(self._entries)
        merged.update(entries)
        return CurrencyTable(merged)

    @property
    def entries(self) -> Mapping[str, str]:
        return self._entries

    @property
    def codes(self) -> frozenset[str]:
        return frozenset(self._entries.values())

    def lookup(self, name: str) -> str | None:
        """Exact match first, then case-insensitive."""
        code = self._entries.get(name)
        if code is not None:
            return code
        return self._lowered.get(name.lower())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.lookup(name) is not None


class CurrencyNormalizer:
    """
    Maps upstream currency names to ISO-4217 codes.

    Attributes:
        table: The shared, read-only currency table
    """

    def __init__(self, table: CurrencyTable | None = None):
        self.table = table if table is not None else CurrencyTable.default()

    def normalize(self, name: str) -> str:
        """
        Normalize a currency display name or code.

        Callers apply DEFAULT_CURRENCY_NAME to absent currencies first; a
        blank name here is unresolved like any other unknown name.

        Args:
            name: Upstream currency name

        Returns:
            The ISO code, or the input unchanged when it cannot be resolved
        """
        code = self.table.lookup(name) if name else None
        if code is not None:
            return code

        logger.warning(
            "Unknown currency name, storing as-is for manual review",
            extra={"currency_name": name},
        )
        increment_counter(currency_unresolved_total)
        return name
