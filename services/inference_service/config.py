from __future__ import annotations

import os
import re
from dataclasses import dataclass

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, None: 1.0}


def parse_duration(value: str) -> float:
    """Parse '500ms', '30s', '2m', '1h' or bare seconds into seconds."""
    match = _DURATION_RE.match(value)
    if not match:
        raise ValueError(f"invalid duration: {value!r}")
    amount, unit = match.groups()
    return float(amount) * _DURATION_UNITS[unit]


def _env(key: str, default: str) -> str:
    return os.environ.get(key) or default


def _env_int(key: str, default: int) -> int:
    try:
        return int(os.environ[key])
    except (KeyError, ValueError):
        return default


def _env_float(key: str, default: float) -> float:
    try:
        return float(os.environ[key])
    except (KeyError, ValueError):
        return default


def _env_seconds(key: str, default: str) -> float:
    try:
        return parse_duration(os.environ[key])
    except (KeyError, ValueError):
        return parse_duration(default)


class ConfigError(ValueError):
    """Raised when the environment does not describe a runnable service."""


@dataclass(frozen=True)
class ServerConfig:
    host: str
    port: int

    @classmethod
    def from_env(cls) -> ServerConfig:
        return cls(
            host=_env("SERVER_HOST", "localhost"),
            port=_env_int("SERVER_PORT", 8080),
        )


@dataclass(frozen=True)
class HuggingFaceConfig:
    api_key: str
    base_url: str
    default_model: str
    timeout: float
    retry_attempts: int
    retry_delay: float
    max_tokens: int
    temperature: float
    rate_limit_rpm: int
    request_deadline: float

    @classmethod
    def from_env(cls) -> HuggingFaceConfig:
        return cls(
            api_key=_env("HUGGINGFACE_API_KEY", ""),
            base_url=_env("HUGGINGFACE_BASE_URL", "https://api-inference.huggingface.co"),
            default_model=_env("HUGGINGFACE_DEFAULT_MODEL", "gpt2"),
            timeout=_env_seconds("HUGGINGFACE_TIMEOUT", "30s"),
            retry_attempts=_env_int("HUGGINGFACE_RETRY_ATTEMPTS", 3),
            retry_delay=_env_seconds("HUGGINGFACE_RETRY_DELAY", "1s"),
            max_tokens=_env_int("HUGGINGFACE_MAX_TOKENS", 100),
            temperature=_env_float("HUGGINGFACE_TEMPERATURE", 0.7),
            rate_limit_rpm=_env_int("HUGGINGFACE_RATE_LIMIT_RPM", 60),
            request_deadline=_env_seconds("HUGGINGFACE_REQUEST_DEADLINE", "60s"),
        )

    def __repr__(self) -> str:
        # keep the key out of logs and tracebacks
        return (
            f"HuggingFaceConfig(base_url={self.base_url!r}, "
            f"default_model={self.default_model!r}, timeout={self.timeout}, "
            f"retry_attempts={self.retry_attempts}, retry_delay={self.retry_delay})"
        )


@dataclass(frozen=True)
class LoggerConfig:
    level: str
    format: str

    @classmethod
    def from_env(cls) -> LoggerConfig:
        return cls(
            level=_env("LOG_LEVEL", "info"),
            format=_env("LOG_FORMAT", "json"),
        )


@dataclass(frozen=True)
class AppConfig:
    server: ServerConfig
    huggingface: HuggingFaceConfig
    logger: LoggerConfig
    backend: str
    redis_url: str | None

    @classmethod
    def from_env(cls) -> AppConfig:
        return cls(
            server=ServerConfig.from_env(),
            huggingface=HuggingFaceConfig.from_env(),
            logger=LoggerConfig.from_env(),
            backend=_env("INFERENCE_BACKEND", "huggingface").lower(),
            redis_url=os.environ.get("REDIS_URL") or None,
        )

    def validate(self) -> None:
        hf = self.huggingface
        if self.backend == "huggingface" and not hf.api_key:
            raise ConfigError("HUGGINGFACE_API_KEY environment variable is required")
        if not 0 < self.server.port <= 65535:
            raise ConfigError(f"invalid server port: {self.server.port}")
        if hf.max_tokens <= 0:
            raise ConfigError("max tokens must be positive")
        if not 0.0 <= hf.temperature <= 1.0:
            raise ConfigError("temperature must be between 0 and 1")
        if hf.retry_attempts < 0:
            raise ConfigError("retry attempts cannot be negative")
