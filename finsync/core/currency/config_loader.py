"""
Currency table extensions loaded from YAML.
"""

from pathlib import Path

import yaml

from .normalizer import CurrencyTable


class CurrencyConfigLoader:
    """
    Loads extra currency names from a YAML configuration file.

    Expected YAML format:
    ```yaml
    currencies:
      Colombian Peso: COP
      Chilean Peso: CLP
      Euro Member Countries: EUR
    ```
    """

    def __init__(self, config_path: str | Path):
        """
        Args:
            config_path: Path to the YAML configuration file
        """
        self.config_path = Path(config_path)
        if not self.config_path.exists():
            raise FileNotFoundError(f"Currency configuration file not found: {config_path}")

    def load_entries(self) -> dict[str, str]:
        """
        Load the name -> code entries.

        Raises:
            ValueError: If the YAML is missing the 'currencies' section or has bad entries
        """
        with open(self.config_path) as f:
            config = yaml.safe_load(f)

        if not config or "currencies" not in config:
            raise ValueError("Configuration file must contain 'currencies' section")

        currencies = config["currencies"]
        if not isinstance(currencies, dict):
            raise ValueError("'currencies' must be a mapping of name to ISO code")

        entries = {}
        for name, code in currencies.items():
            if not isinstance(code, str):
                raise ValueError(f"Currency '{name}' must map to a string code, got {code!r}")
            entries[str(name)] = code
        return entries

    def load_table(self, base: CurrencyTable | None = None) -> CurrencyTable:
        """Extend `base` (the default table when omitted) with the file's entries."""
        base = base if base is not None else CurrencyTable.default()
        return base.extend(self.load_entries())
