"""Configuration loading and persistence for checkclaw."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from checkclaw.utils.logging_config import get_logger

logger = get_logger(__name__)


class ConfigError(Exception):
    """Exception raised for configuration errors."""

    pass


DEFAULT_API_URL = "https://api.checkclaw.com"
DEFAULT_CONSENT_URL = "https://app.checkclaw.com/link"
DEFAULT_LINK_TIMEOUT = 120
DEFAULT_REQUEST_TIMEOUT = 30.0
CONFIG_FILE_NAME = "config.yaml"

AUTH_APIKEY = "apikey"
AUTH_SESSION = "session"

# Environment variables that override the config file
ENV_CONFIG_DIR = "CHECKCLAW_CONFIG_DIR"
ENV_API_URL = "CHECKCLAW_API_URL"
ENV_API_KEY = "CHECKCLAW_API_KEY"


@dataclass
class LinkConfig:
    """Configuration for the bank-link flow.

    Attributes:
        consent_url: Hosted consent page the browser is sent to.
        timeout_seconds: How long to wait for the consent page to report back.
        local_page: Serve the consent page from the local listener instead.
    """

    consent_url: str = DEFAULT_CONSENT_URL
    timeout_seconds: int = DEFAULT_LINK_TIMEOUT
    local_page: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "LinkConfig":
        """Create from dictionary."""
        timeout = int(data.get("timeout_seconds", DEFAULT_LINK_TIMEOUT))  # type: ignore[call-overload]
        if timeout <= 0:
            raise ConfigError(f"link.timeout_seconds must be positive, got {timeout}")
        return cls(
            consent_url=str(data.get("consent_url", DEFAULT_CONSENT_URL)),
            timeout_seconds=timeout,
            local_page=bool(data.get("local_page", False)),
        )


@dataclass
class OutputConfig:
    """Configuration for terminal and export output.

    Attributes:
        currency_symbol: Currency symbol for display.
        decimal_places: Number of decimal places.
    """

    currency_symbol: str = "$"
    decimal_places: int = 2

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "OutputConfig":
        """Create from dictionary."""
        return cls(
            currency_symbol=str(data.get("currency_symbol", "$")),
            decimal_places=int(data.get("decimal_places", 2)),  # type: ignore[call-overload]
        )


@dataclass
class LoggingConfig:
    """Configuration for logging.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Log file path, relative paths resolve inside the config directory.
    """

    level: str = "INFO"
    file: str = "checkclaw.log"

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "LoggingConfig":
        """Create from dictionary."""
        return cls(
            level=str(data.get("level", "INFO")),
            file=str(data.get("file", "checkclaw.log")),
        )


@dataclass
class Config:
    """Main configuration container.

    The api_url and credential fields hold what config.yaml stores. Values
    from CHECKCLAW_API_URL / CHECKCLAW_API_KEY live in env_api_url and
    env_api_key, take precedence through the active_* properties and are
    never written back by save_config.

    Attributes:
        api_url: Base URL of the checkclaw API.
        auth_type: "apikey", "session" or None when logged out.
        api_key: Stored API key (auth_type "apikey").
        session_token: Stored session cookie string (auth_type "session").
        request_timeout: Seconds before an API request is abandoned.
        link: Bank-link flow configuration.
        output: Output formatting configuration.
        logging: Logging configuration.
        path: File this configuration is persisted to.
        env_api_url: API URL taken from the environment, if any.
        env_api_key: API key taken from the environment, if any.
    """

    api_url: str = DEFAULT_API_URL
    auth_type: Optional[str] = None
    api_key: Optional[str] = None
    session_token: Optional[str] = None
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    link: LinkConfig = field(default_factory=LinkConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    path: Optional[Path] = field(default=None, compare=False)
    env_api_url: Optional[str] = field(default=None, compare=False, repr=False)
    env_api_key: Optional[str] = field(default=None, compare=False, repr=False)

    @property
    def active_api_url(self) -> str:
        """API URL requests go to."""
        return self.env_api_url or self.api_url

    @property
    def active_auth_type(self) -> Optional[str]:
        """Auth scheme requests use; an environment API key implies "apikey"."""
        if self.env_api_key:
            return AUTH_APIKEY
        return self.auth_type

    @property
    def active_api_key(self) -> Optional[str]:
        return self.env_api_key or self.api_key

    @property
    def is_authenticated(self) -> bool:
        """Whether usable credentials are available."""
        auth_type = self.active_auth_type
        if auth_type == AUTH_SESSION:
            return bool(self.session_token)
        if auth_type == AUTH_APIKEY:
            return bool(self.active_api_key)
        return False

    def set_api_url(self, url: str) -> None:
        """Store a new API URL; it also replaces any environment URL for this run."""
        self.api_url = url.rstrip("/")
        self.env_api_url = None

    def set_api_key(self, key: str) -> None:
        """Switch to API-key auth, dropping any session.

        An explicitly set key replaces an environment key for this run.
        """
        self.auth_type = AUTH_APIKEY
        self.api_key = key
        self.session_token = None
        self.env_api_key = None

    def set_session(self, token: str) -> None:
        """Switch to session-cookie auth, dropping any API key."""
        self.auth_type = AUTH_SESSION
        self.session_token = token
        self.api_key = None

    def clear_auth(self) -> None:
        """Forget all credentials, including an environment key for this run."""
        self.auth_type = None
        self.api_key = None
        self.session_token = None
        self.env_api_key = None

    @property
    def log_path(self) -> Path:
        """Resolved log file path."""
        log_file = Path(self.logging.file).expanduser()
        if log_file.is_absolute():
            return log_file
        base = self.path.parent if self.path else get_config_dir()
        return base / log_file

    def to_dict(self) -> dict[str, object]:
        """Serializable form written by save_config."""
        return {
            "api_url": self.api_url,
            "auth_type": self.auth_type,
            "api_key": self.api_key,
            "session_token": self.session_token,
            "request_timeout": self.request_timeout,
            "link": {
                "consent_url": self.link.consent_url,
                "timeout_seconds": self.link.timeout_seconds,
                "local_page": self.link.local_page,
            },
            "output": {
                "currency_symbol": self.output.currency_symbol,
                "decimal_places": self.output.decimal_places,
            },
            "logging": {
                "level": self.logging.level,
                "file": self.logging.file,
            },
        }


def get_config_dir() -> Path:
    """Directory holding config.yaml and the log file.

    Resolution order: $CHECKCLAW_CONFIG_DIR, $XDG_CONFIG_HOME/checkclaw,
    ~/.config/checkclaw.
    """
    explicit = os.environ.get(ENV_CONFIG_DIR)
    if explicit:
        return Path(explicit).expanduser()
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg).expanduser() / "checkclaw"
    return Path.home() / ".config" / "checkclaw"


def get_config_path() -> Path:
    return get_config_dir() / CONFIG_FILE_NAME


def load_yaml_file(path: Path) -> dict[str, object]:
    """Load a YAML mapping from path.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content, {} for an empty file.

    Raises:
        FileNotFoundError: If file doesn't exist.
        ConfigError: If the file is not valid YAML or not a mapping.
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigError(f"{path} must contain a mapping, got {type(content).__name__}")
    return content


def _section(data: dict[str, object], key: str) -> dict[str, object]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be a mapping, got {type(value).__name__}")
    return value


def _apply_env_overrides(config: Config) -> None:
    config.env_api_url = os.environ.get(ENV_API_URL) or None
    config.env_api_key = os.environ.get(ENV_API_KEY) or None


def load_config(path: Optional[Path] = None, apply_env: bool = True) -> Config:
    """Load configuration from config.yaml, falling back to defaults.

    Args:
        path: Config file path (default: get_config_path()).
        apply_env: Record CHECKCLAW_* environment overrides (never persisted).

    Returns:
        Complete Config object.

    Raises:
        ConfigError: If the file exists but cannot be used.
    """
    if path is None:
        path = get_config_path()

    config = Config(path=path)

    if path.exists():
        data = load_yaml_file(path)
        auth_type = data.get("auth_type")
        if auth_type not in (None, AUTH_APIKEY, AUTH_SESSION):
            raise ConfigError(f"Unknown auth_type '{auth_type}' in {path}")

        config.api_url = str(data.get("api_url") or DEFAULT_API_URL)
        config.auth_type = auth_type  # type: ignore[assignment]
        config.api_key = data.get("api_key") or None  # type: ignore[assignment]
        config.session_token = data.get("session_token") or None  # type: ignore[assignment]
        try:
            config.request_timeout = float(data.get("request_timeout", DEFAULT_REQUEST_TIMEOUT))  # type: ignore[arg-type]
            config.link = LinkConfig.from_dict(_section(data, "link"))
            config.output = OutputConfig.from_dict(_section(data, "output"))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid value in {path}: {e}") from e
        config.logging = LoggingConfig.from_dict(_section(data, "logging"))
        logger.debug(f"Loaded configuration from {path}")
    else:
        logger.debug(f"Config file not found: {path}, using defaults")

    if apply_env:
        _apply_env_overrides(config)

    return config


def save_config(config: Config, path: Optional[Path] = None) -> Path:
    """Persist configuration to config.yaml.

    The file holds credentials, so it is created readable by the owner only.

    Args:
        config: Config to save.
        path: Destination (default: config.path, then get_config_path()).

    Returns:
        The path written.
    """
    if path is None:
        path = config.path or get_config_path()

    # Ensure parent directory exists
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        yaml.dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
    os.chmod(path, 0o600)

    config.path = path
    logger.info(f"Saved configuration to {path}")
    return path
