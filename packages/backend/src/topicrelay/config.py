"""Application configuration via environment variables.

Uses pydantic-settings to load config from RELAY_* env vars. The broker
variables also accept their legacy CENTRIFUGO_* names so an existing
broker deployment can be pointed at the relay unchanged.

Learn: the Settings object is frozen. Components (issuer, publisher,
router) take it as a constructor argument instead of importing the
module-level singleton, so tests can build their own.
"""

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings

from topicrelay.topics import AGGREGATE_TOPIC, DEFAULT_CATALOG

DEFAULT_TOKEN_SECRET = "token_hmac_secret_key"
DEFAULT_API_KEY = "api_key"


class Settings(BaseSettings):
    """All relay configuration. Set via RELAY_* env vars."""

    # Broker
    broker_url: str = Field(
        "http://localhost:8000",
        validation_alias=AliasChoices("RELAY_BROKER_URL", "CENTRIFUGO_URL", "broker_url"),
    )
    broker_api_key: str = Field(
        DEFAULT_API_KEY,
        validation_alias=AliasChoices(
            "RELAY_BROKER_API_KEY", "CENTRIFUGO_API_KEY", "broker_api_key"
        ),
    )
    publish_timeout_seconds: float = 10.0

    # Credentials
    token_secret: str = Field(
        DEFAULT_TOKEN_SECRET,
        validation_alias=AliasChoices(
            "RELAY_TOKEN_SECRET", "CENTRIFUGO_TOKEN_HMAC_SECRET_KEY", "token_secret"
        ),
    )
    token_algorithm: str = "HS256"
    token_ttl_hours: int = 24

    # Topic catalog — "all" is the aggregate topic
    topics: list[str] = list(DEFAULT_CATALOG)

    # Server
    environment: str = "development"
    host: str = "0.0.0.0"
    port: int = Field(8080, validation_alias=AliasChoices("RELAY_PORT", "PORT", "port"))

    # CORS
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    model_config = {"env_prefix": "RELAY_", "env_ignore_empty": True, "frozen": True}

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Ensure broker secrets are changed in non-development environments."""
        if self.environment != "development":
            if self.token_secret == DEFAULT_TOKEN_SECRET:
                raise ValueError(
                    "RELAY_TOKEN_SECRET must be set to a secure value in "
                    "non-development environments."
                )
            if self.broker_api_key == DEFAULT_API_KEY:
                raise ValueError(
                    "RELAY_BROKER_API_KEY must be set in non-development environments."
                )
        if AGGREGATE_TOPIC not in self.topics:
            raise ValueError("The topic catalog must include the aggregate topic 'all'")
        return self


# Singleton — the app factory and CLI read this; components receive it explicitly
settings = Settings()
