"""
Currency normalization to ISO-4217 codes.
"""

from .config_loader import CurrencyConfigLoader
from .normalizer import DEFAULT_CURRENCY_NAME, CurrencyNormalizer, CurrencyTable

__all__ = [
    "CurrencyNormalizer",
    "CurrencyTable",
    "CurrencyConfigLoader",
    "DEFAULT_CURRENCY_NAME",
]
