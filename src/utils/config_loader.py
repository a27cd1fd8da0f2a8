"""
Configuration loader for the payment gateway middleware
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Optional
from pydantic import BaseModel, Field, ValidationError, field_validator
import logging

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "gateway_config.yml"


class TransportConfig(BaseModel):
    """Timeouts, retry budget and connection-pool sizing (seconds)"""

    connect_timeout: float = Field(default=30.0, gt=0)
    read_timeout: float = Field(default=30.0, gt=0)
    write_timeout: float = Field(default=30.0, gt=0)
    pool_timeout: float = Field(default=30.0, gt=0)
    max_attempts: int = Field(default=3, ge=1, le=10)
    initial_backoff: float = Field(default=1.0, ge=0.0)
    max_backoff: float = Field(default=16.0, ge=0.0)
    max_connections: int = Field(default=500, ge=1)
    max_keepalive_connections: int = Field(default=100, ge=0)
    keepalive_expiry: float = Field(default=20.0, ge=0.0)


class TransactionIdConfig(BaseModel):
    """Locally generated transaction id format"""

    prefix: str = "TX"
    length: int = Field(default=14, ge=6, le=32)
    alphabet: str = Field(default="0123456789", min_length=2)
    reservation_attempts: int = Field(default=5, ge=1)
    reservation_ttl_seconds: int = Field(default=86400, ge=1)
    in_flight_timeout_seconds: int = Field(default=300, ge=1)


class InstrumentConfig(BaseModel):
    """Endpoints and signing material for one instrument type"""

    paths: Dict[str, str]
    expires_in: Optional[int] = None
    salt_key: str = Field(default="", repr=False)
    salt_index: str = "1"

    def path_for(self, phase: str, **identifiers: str) -> str:
        if phase not in self.paths:
            raise KeyError(f"No path configured for phase '{phase}'")
        return self.paths[phase].format(**identifiers)


class GatewayConfig(BaseModel):
    """Complete gateway configuration"""

    base_url: str
    callback_url: str = ""
    callback_instrument: str = "static_qr"
    transport: TransportConfig = Field(default_factory=TransportConfig)
    transaction_id: TransactionIdConfig = Field(default_factory=TransactionIdConfig)
    instruments: Dict[str, InstrumentConfig]

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    def instrument(self, name: str) -> InstrumentConfig:
        if name not in self.instruments:
            raise ValueError(f"Instrument '{name}' is not configured")
        return self.instruments[name]


def _apply_environment(config_data: Dict) -> Dict:
    """Overlay secrets and deployment switches from the environment."""
    gateway = config_data.setdefault("gateway", {})
    if os.getenv("GATEWAY_BASE_URL"):
        gateway["base_url"] = os.getenv("GATEWAY_BASE_URL")
    if os.getenv("GATEWAY_CALLBACK_URL"):
        gateway["callback_url"] = os.getenv("GATEWAY_CALLBACK_URL")

    for name, instrument in (config_data.get("instruments") or {}).items():
        prefix = name.upper()
        instrument["salt_key"] = os.getenv(f"{prefix}_SALT_KEY", instrument.get("salt_key", ""))
        instrument["salt_index"] = os.getenv(f"{prefix}_SALT_INDEX", str(instrument.get("salt_index", "1")))
    return config_data


def load_gateway_config(config_path: Optional[Path] = None) -> GatewayConfig:
    """
    Load and validate gateway configuration from YAML file

    Args:
        config_path: Path to config file. Defaults to $GATEWAY_CONFIG_PATH,
            then config/gateway_config.yml

    Returns:
        Validated GatewayConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValidationError: If config doesn't match schema
    """
    load_dotenv()
    if config_path is None:
        env_path = os.getenv("GATEWAY_CONFIG_PATH")
        config_path = Path(env_path) if env_path else DEFAULT_CONFIG_PATH

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config_data = yaml.safe_load(f) or {}

    config_data = _apply_environment(config_data)

    try:
        config = GatewayConfig(
            **config_data["gateway"],
            transport=config_data.get("transport") or {},
            transaction_id=config_data.get("transaction_id") or {},
            instruments=config_data.get("instruments") or {},
        )
    except ValidationError as e:
        logger.error("Config validation failed: %s", e)
        raise

    missing = [name for name, inst in config.instruments.items() if not inst.salt_key]
    if missing:
        logger.warning("No salt key configured for instruments: %s", ", ".join(sorted(missing)))
    logger.info("Successfully loaded gateway config from %s", config_path)
    return config
