from pathlib import Path
from typing import Optional
import io
import logging

import pydantic
import yaml

from mergeguard import config
from mergeguard.errors import ConfigError

LOG_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


class Model(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="forbid", populate_by_name=True)


class SSLOptions(Model):
    enabled: bool = pydantic.Field(default_factory=lambda: config.SSL_ENABLED)
    cert: str = pydantic.Field(default_factory=lambda: config.SSL_CERT)
    key: str = pydantic.Field(default_factory=lambda: config.SSL_KEY)

    def validate_options(self) -> None:
        if not self.enabled:
            return
        if self.key == "" or self.cert == "":
            raise ConfigError(
                "Incomplete SSL configuration: cert and key must be set if SSL is enabled"
            )


class ServerOptions(Model):
    port: int = pydantic.Field(default_factory=lambda: config.PORT)
    webhook_secret: Optional[str] = pydantic.Field(
        default_factory=lambda: config.WEBHOOK_SECRET, alias="webhook-secret"
    )
    periodic_refresh: float = pydantic.Field(
        default_factory=lambda: config.PERIODIC_REFRESH, alias="periodic-refresh"
    )
    ssl: SSLOptions = pydantic.Field(default_factory=SSLOptions)

    def validate_options(self) -> None:
        if self.port == 0:
            raise ConfigError("Port can't be 0")
        if self.periodic_refresh < 0:
            raise ConfigError("Periodic refresh can't be negative")
        self.ssl.validate_options()


class GithubOptions(Model):
    client_id: str = pydantic.Field(
        default_factory=lambda: config.GITHUB_CLIENT_ID, alias="client-id"
    )
    private_key: str = pydantic.Field(
        default_factory=lambda: config.GITHUB_PRIVATE_KEY, alias="private-key"
    )
    api: str = pydantic.Field(default_factory=lambda: config.GITHUB_API_URL)

    def validate_options(self) -> None:
        if self.client_id == "":
            raise ConfigError("GitHub Client ID must be set in the configuration")
        if self.private_key == "":
            raise ConfigError("GitHub private key must be set in the configuration")

    def read_private_key(self) -> str:
        """
        The private key may be given inline as PEM or as a path to a key file.
        """
        if self.private_key.lstrip().startswith("-----BEGIN"):
            return self.private_key
        try:
            return Path(self.private_key).read_text()
        except OSError as e:
            raise ConfigError(
                f"Failed to read private key '{self.private_key}': {e}"
            ) from e


class Configuration(Model):
    log_level: str = pydantic.Field(
        default_factory=lambda: logging.getLevelName(config.OVERRIDE_LOGGING).lower(),
        alias="log-level",
    )
    server: ServerOptions = pydantic.Field(default_factory=ServerOptions)
    github: GithubOptions = pydantic.Field(default_factory=GithubOptions)

    @property
    def logging_level(self) -> int:
        return LOG_LEVELS.get(self.log_level.lower(), logging.INFO)

    def validate_options(self) -> None:
        self.server.validate_options()
        self.github.validate_options()

    @classmethod
    def parse_yaml(cls, raw: str, source: str = "<string>") -> "Configuration":
        try:
            data = yaml.safe_load(io.StringIO(raw))
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse config file '{source}': {e}") from e

        try:
            cfg = cls() if data is None else cls.model_validate(data)
        except pydantic.ValidationError as e:
            raise ConfigError(f"Failed to parse config file '{source}': {e}") from e

        cfg.validate_options()
        return cfg

    @classmethod
    def load(cls, path: Optional[str] = None) -> "Configuration":
        if path is None:
            cfg = cls()
            cfg.validate_options()
            return cfg

        try:
            with open(path) as fh:
                raw = fh.read()
        except OSError as e:
            raise ConfigError(f"Failed to read config file '{path}': {e}") from e

        return cls.parse_yaml(raw, source=path)
