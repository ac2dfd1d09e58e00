import os
from dataclasses import dataclass
from typing import Optional

ENV_PREFIX = "HLS_PROXY_"

TRUE_VALUES = ("1", "true", "yes", "on")
FALSE_VALUES = ("0", "false", "no", "off")


@dataclass(frozen=True)
class Config:
    host: str = "0.0.0.0"
    port: int = 8080
    public_url: Optional[str] = None
    timeout: Optional[float] = None
    verify_ssl: bool = True
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls, environ=None):
        """Build the process configuration from ``HLS_PROXY_*`` variables."""
        env = os.environ if environ is None else environ

        def get(name):
            value = env.get(ENV_PREFIX + name, "").strip()
            return value or None

        kwargs = {}
        if get("HOST"):
            kwargs["host"] = get("HOST")
        if get("PORT"):
            kwargs["port"] = _parse_int("PORT", get("PORT"))
        if get("PUBLIC_URL"):
            kwargs["public_url"] = get("PUBLIC_URL").rstrip("/")
        if get("TIMEOUT"):
            timeout = _parse_float("TIMEOUT", get("TIMEOUT"))
            kwargs["timeout"] = timeout or None
        if get("VERIFY_SSL"):
            kwargs["verify_ssl"] = _parse_bool("VERIFY_SSL", get("VERIFY_SSL"))
        if get("LOG_LEVEL"):
            kwargs["log_level"] = get("LOG_LEVEL").upper()
        if get("LOG_FILE"):
            kwargs["log_file"] = get("LOG_FILE")
        return cls(**kwargs)


def _parse_int(name, value):
    try:
        return int(value)
    except ValueError as err:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {value!r}") from err


def _parse_float(name, value):
    try:
        number = float(value)
    except ValueError as err:
        raise ValueError(f"{ENV_PREFIX}{name} must be a number, got {value!r}") from err
    if number < 0:
        raise ValueError(f"{ENV_PREFIX}{name} must not be negative, got {value!r}")
    return number


def _parse_bool(name, value):
    lowered = value.lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ValueError(f"{ENV_PREFIX}{name} must be true or false, got {value!r}")
