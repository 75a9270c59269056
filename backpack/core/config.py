from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _getenv_number(name: str, default: str, cast: type[int] | type[float]):
    raw = _getenv(name, default)
    try:
        value = cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number (got {raw!r})") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive (got {raw!r})")
    return value


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    # Audience presented to the identity verifier; must match the public host.
    public_url: str = "http://localhost:8000"
    identity_verifier_url: str = "https://verifier.login.persona.org/verify"
    fetch_timeout_seconds: float = 5.0
    fetch_max_bytes: int = 256 * 1024
    fetch_max_redirects: int = 3
    upload_max_bytes: int = 1024 * 1024
    image_dir: str = "static/_badges"

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    log_json_raw = _getenv("LOG_JSON", "false").lower()
    port_raw = _getenv("PORT", "8000")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    if log_json_raw not in ("true", "false", "1", "0", "yes", "no"):
        raise ValueError(f"LOG_JSON must be true|false (got {log_json_raw!r})")

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    verifier_url = _getenv(
        "IDENTITY_VERIFIER_URL", "https://verifier.login.persona.org/verify"
    )
    if not verifier_url.startswith(("http://", "https://")):
        raise ValueError(
            f"IDENTITY_VERIFIER_URL must be an http(s) URL (got {verifier_url!r})"
        )

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json_raw in ("true", "1", "yes"),
        port=port,
        database_url=_getenv("DATABASE_URL", "") or None,
        redis_url=_getenv("REDIS_URL", "") or None,
        public_url=_getenv("PUBLIC_URL", f"http://localhost:{port}"),
        identity_verifier_url=verifier_url,
        fetch_timeout_seconds=_getenv_number("FETCH_TIMEOUT_SECONDS", "5", float),
        fetch_max_bytes=_getenv_number("FETCH_MAX_BYTES", str(256 * 1024), int),
        fetch_max_redirects=_getenv_number("FETCH_MAX_REDIRECTS", "3", int),
        upload_max_bytes=_getenv_number("UPLOAD_MAX_BYTES", str(1024 * 1024), int),
        image_dir=_getenv("IMAGE_DIR", "static/_badges"),
    )


SETTINGS = load_settings()
