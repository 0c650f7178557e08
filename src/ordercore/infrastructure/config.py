"""Configuration loading for ordercore.

Settings come from a YAML file (``config/default.yaml`` at the project
root, or the file named by ORDERCORE_CONFIG) and a couple of environment
overrides.  Missing keys fall back to the dataclass defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path

import yaml

from ordercore.domain.exceptions import ValidationError

PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config" / "default.yaml"


@dataclass
class Settings:
    """Runtime configuration."""

    data_dir: Path = PROJECT_ROOT / "data"
    log_level: str = "INFO"

    # Pricing
    tax_rate: Decimal = Decimal("0.10")
    flat_shipping_fee: Decimal = Decimal("9.99")
    free_shipping_threshold: Decimal = Decimal("50.00")

    # Optimistic transaction retries
    max_attempts: int = 5
    backoff_initial: float = 0.05
    backoff_factor: float = 2.0
    backoff_max: float = 1.0

    @property
    def store_path(self) -> Path:
        return self.data_dir / "store.json"

    @classmethod
    def from_yaml(cls, config_path: str | Path | None = None) -> Settings:
        """Load settings from YAML, then apply environment overrides.

        Args:
            config_path: Path to the YAML file.  Defaults to ORDERCORE_CONFIG
                or ``config/default.yaml``.

        Returns:
            Settings instance
        """
        if config_path is None:
            config_path = os.getenv("ORDERCORE_CONFIG") or DEFAULT_CONFIG_PATH
        config_path = Path(config_path)

        config: dict = {}
        if config_path.exists():
            with open(config_path, "r", encoding="utf-8") as f:
                try:
                    config = yaml.safe_load(f) or {}
                except yaml.YAMLError as exc:
                    raise ValidationError(f"Invalid config file {config_path}: {exc}") from exc
        if not isinstance(config, dict):
            raise ValidationError(f"Config file {config_path} must contain a mapping")

        storage = config.get("storage", {})
        logging_config = config.get("logging", {})
        pricing = config.get("pricing", {})
        retry = config.get("retry", {})

        data_dir = Path(storage.get("data_dir", cls.data_dir))
        if not data_dir.is_absolute():
            data_dir = PROJECT_ROOT / data_dir

        settings = cls(
            data_dir=data_dir,
            log_level=str(logging_config.get("level", cls.log_level)),
            tax_rate=Decimal(str(pricing.get("tax_rate", cls.tax_rate))),
            flat_shipping_fee=Decimal(str(pricing.get("flat_shipping_fee", cls.flat_shipping_fee))),
            free_shipping_threshold=Decimal(
                str(pricing.get("free_shipping_threshold", cls.free_shipping_threshold))
            ),
            max_attempts=int(retry.get("max_attempts", cls.max_attempts)),
            backoff_initial=float(retry.get("backoff_initial", cls.backoff_initial)),
            backoff_factor=float(retry.get("backoff_factor", cls.backoff_factor)),
            backoff_max=float(retry.get("backoff_max", cls.backoff_max)),
        )
        settings.apply_env()
        return settings

    def apply_env(self) -> None:
        data_dir = os.getenv("ORDERCORE_DATA_DIR")
        if data_dir:
            self.data_dir = Path(data_dir)
        log_level = os.getenv("LOG_LEVEL")
        if log_level:
            self.log_level = log_level.upper()
