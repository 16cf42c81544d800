"""Gateway configuration from the environment.

`.env` is loaded first (already-set variables win), then every `COINSETTER_*`
variable is read into a validated `CoinsetterConfig`. Missing identifiers and
leftover `your_..._here` placeholders fail fast with the variable name.
"""

import os
from typing import Literal, TypeVar

import dotenv
from pydantic import BaseModel, Field, field_validator

_T = TypeVar("_T", int, float)

OrderDestination = Literal["Coinsetter", "Null"]


def _get_required_env(name: str) -> str:
    """Read a required env var or raise a helpful error."""
    value = os.getenv(name, "").strip()
    if not value:
        raise ValueError(f"{name} is required. Please set it in your .env file.")
    if value.startswith("your_") and value.endswith("_here"):
        raise ValueError(f"{name} is required. Please replace the placeholder value in your .env file.")
    return value


def _get_env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip()


def _get_env_number(name: str, default: _T, cast: type[_T]) -> _T:
    """Read an int/float env var with a default."""
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a {cast.__name__}. Got: {raw!r}") from exc


class CoinsetterConfig(BaseModel):
    """Configuration for talking to Coinsetter."""

    http_url: str = Field(default="https://api.coinsetter.com/v1", description="REST base URL")
    socket_io_url: str = Field(default="https://plug.coinsetter.com:3000", description="Socket.IO push URL")
    customer_uuid: str = Field(..., description="Customer uuid; also scopes the orders push channel")
    account_uuid: str = Field(..., description="Trading account uuid")
    client_session_id: str = Field(..., description="Value of the coinsetter-client-session-id header")
    order_destination: OrderDestination = Field(
        default="Null", description="Send orders to Coinsetter, or to the null gateway"
    )
    symbol: str = Field(default="BTCUSD", description="Venue symbol for the traded pair")
    position_poll_interval_s: float = Field(default=15.0, description="Balance poll period (seconds)")

    @field_validator("customer_uuid", "account_uuid", "client_session_id")
    def validate_required(cls, v: str) -> str:
        """Validate identifiers are set (not empty/placeholder)."""
        if not v or (v.startswith("your_") and v.endswith("_here")):
            raise ValueError("Coinsetter identifiers are required. Please set them in your .env file.")
        return v

    @field_validator("http_url", "socket_io_url")
    def validate_url(cls, v: str) -> str:
        """Require an absolute http(s) URL and drop any trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Coinsetter URLs must start with http:// or https://. Got: {v!r}")
        return v.rstrip("/")

    @field_validator("position_poll_interval_s")
    def validate_poll_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"position_poll_interval_s must be > 0. Got: {v}")
        return v


class Config(BaseModel):
    """Top-level application configuration."""

    coinsetter: CoinsetterConfig = Field(..., description="Coinsetter configuration")
    observability_db_path: str | None = Field(default=None, description="DuckDB file for gateway events")


def load_config() -> Config:
    """Build `Config` from the environment; raises `ValueError` naming the bad variable."""
    dotenv.load_dotenv()

    coinsetter = CoinsetterConfig(
        http_url=_get_env_str("COINSETTER_HTTP_URL", "https://api.coinsetter.com/v1"),
        socket_io_url=_get_env_str("COINSETTER_SOCKET_IO_URL", "https://plug.coinsetter.com:3000"),
        customer_uuid=_get_required_env("COINSETTER_CUSTOMER_UUID"),
        account_uuid=_get_required_env("COINSETTER_ACCOUNT_UUID"),
        client_session_id=_get_required_env("COINSETTER_CLIENT_SESSION_ID"),
        order_destination=_get_env_str("COINSETTER_ORDER_DESTINATION", "Null"),
        symbol=_get_env_str("COINSETTER_SYMBOL", "BTCUSD"),
        position_poll_interval_s=_get_env_number("COINSETTER_POSITION_POLL_INTERVAL", 15.0, float),
    )
    return Config(coinsetter=coinsetter, observability_db_path=os.getenv("OBSERVABILITY_DB_PATH") or None)
