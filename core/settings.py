from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from urllib.parse import urlparse

from dotenv import load_dotenv

load_dotenv()

# Below this the suffix alphabet gives fewer than ~36 bits of entropy.
MIN_INVOICE_ID_LENGTH = 7


def _split_csv(value: str | None) -> tuple[str, ...]:
    if not value:
        return tuple()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _env(name: str) -> str | None:
    raw_value = os.getenv(name)
    if raw_value is None:
        return None
    normalized = raw_value.strip()
    return normalized or None


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def collect_missing_required_env_vars() -> list[str]:
    missing: list[str] = []

    always_required = (
        "MONGO_URL",
        "DB_NAME",
        "CROSSPAY_ACCOUNT_ID",
        "CROSSPAY_API_KEY",
        "CROSSPAY_BASE_URL",
        "CROSSPAY_SIGNING_SECRET",
        "CROSSPAY_RETURN_URL",
    )
    for var_name in always_required:
        if _env(var_name) is None:
            missing.append(var_name)

    return sorted(set(missing))


def collect_invalid_env_values() -> list[str]:
    invalid_values: list[str] = []

    for var_name in ("CROSSPAY_BASE_URL", "CROSSPAY_RETURN_URL", "PAYMENT_SUCCESS_PAGE_URL", "PAYMENT_FAILURE_PAGE_URL"):
        value = _env(var_name)
        if value is not None and not _is_http_url(value):
            invalid_values.append(f"{var_name} must be an absolute http(s) URL")

    id_length = _env("INVOICE_ID_LENGTH")
    if id_length is not None:
        try:
            parsed_length = int(id_length)
            if parsed_length < MIN_INVOICE_ID_LENGTH:
                raise ValueError("too short")
        except ValueError:
            invalid_values.append(
                f"INVOICE_ID_LENGTH must be an integer >= {MIN_INVOICE_ID_LENGTH}"
            )

    timeout_ms = _env("MONGO_TIMEOUT_MS")
    if timeout_ms is not None:
        try:
            if int(timeout_ms) <= 0:
                raise ValueError("must be positive")
        except ValueError:
            invalid_values.append("MONGO_TIMEOUT_MS must be a positive integer")

    return invalid_values


def validate_required_environment() -> None:
    missing_vars = collect_missing_required_env_vars()
    invalid_values = collect_invalid_env_values()
    if not missing_vars and not invalid_values:
        return

    message_lines = ["Application startup blocked by invalid environment configuration."]
    if missing_vars:
        message_lines.append("")
        message_lines.append("Missing required environment variables:")
        message_lines.extend(f"- {name}" for name in missing_vars)
    if invalid_values:
        message_lines.append("")
        message_lines.append("Invalid environment values:")
        message_lines.extend(f"- {message}" for message in invalid_values)
    raise RuntimeError("\n".join(message_lines))


@dataclass(frozen=True)
class Settings:
    env: str
    log_level: str
    cors_origins: tuple[str, ...]
    debug_include_error_details: bool
    crosspay_account_id: str
    crosspay_api_key: str
    crosspay_base_url: str
    crosspay_signing_secret: str
    crosspay_return_url: str
    crosspay_default_item_name: str
    invoice_id_prefix: str
    invoice_id_length: int
    payment_success_page_url: str | None
    payment_failure_page_url: str | None

    @property
    def is_production(self) -> bool:
        return self.env.lower() == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    validate_required_environment()

    return Settings(
        env=os.getenv("ENV", "development"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        cors_origins=_split_csv(os.getenv("CORS_ORIGINS")),
        debug_include_error_details=os.getenv("DEBUG_INCLUDE_ERROR_DETAILS", "false").lower()
        in {"1", "true", "yes"},
        crosspay_account_id=_env("CROSSPAY_ACCOUNT_ID") or "",
        crosspay_api_key=_env("CROSSPAY_API_KEY") or "",
        crosspay_base_url=_env("CROSSPAY_BASE_URL") or "",
        crosspay_signing_secret=_env("CROSSPAY_SIGNING_SECRET") or "",
        crosspay_return_url=_env("CROSSPAY_RETURN_URL") or "",
        crosspay_default_item_name=os.getenv("CROSSPAY_DEFAULT_ITEM_NAME", "Invoice payment"),
        invoice_id_prefix=os.getenv("INVOICE_ID_PREFIX", "INV-"),
        invoice_id_length=int(_env("INVOICE_ID_LENGTH") or "12"),
        payment_success_page_url=_env("PAYMENT_SUCCESS_PAGE_URL"),
        payment_failure_page_url=_env("PAYMENT_FAILURE_PAGE_URL"),
    )
