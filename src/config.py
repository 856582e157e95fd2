"""Process-wide configuration, loaded once at startup and never mutated.

- Reads a ``.env`` file (if present) then the environment.
- Cleans stray quotes/whitespace pasted into secrets.
- Fails with InitializationFailure on anything that would make every
  request fail later, so a misconfigured process never serves traffic.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from dotenv import load_dotenv

DEFAULT_API_VERSION = "2020-08-27"
DEFAULT_WEBHOOK_PATH = "/payments/stripe/webhook"
DEFAULT_REDIRECT_PATH = "/payments/stripe/return"
TLS_VERSIONS = ("TLSv1_2", "TLSv1_3")


class InitializationFailure(Exception):
    """Configuration or runtime dependency problem; fatal for the process."""


def _clean_env(v: str | None) -> str:
    return (v or "").strip().strip("'").strip('"').strip("`")


def _flag(v: str | None, default: bool = False) -> bool:
    if not v:
        return default
    return _clean_env(v).lower() in ("1", "true", "yes", "on")


def _int(env: Mapping, name: str, default: int) -> int:
    raw = _clean_env(env.get(name))
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise InitializationFailure(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    secret_key: str
    webhook_secret: str
    publishable_key: str = ""
    webhook_id: str = ""
    site_url: str = "http://localhost:8000"
    success_url: str = ""
    cancel_url: str = ""
    max_network_retries: int = 0
    ca_bundle_path: str | None = None
    tls_min_version: str | None = None
    enable_telemetry: bool = False
    signature_tolerance: int = 300
    api_version: str = DEFAULT_API_VERSION
    webhook_path: str = DEFAULT_WEBHOOK_PATH
    redirect_path: str = DEFAULT_REDIRECT_PATH
    debug_payments: bool = False
    log_json: bool = True

    def __post_init__(self):
        if not self.secret_key:
            raise InitializationFailure("STRIPE_SECRET_KEY is required")
        if not self.webhook_secret:
            raise InitializationFailure("STRIPE_WEBHOOK_SECRET is required")
        if self.max_network_retries < 0:
            raise InitializationFailure("STRIPE_MAX_NETWORK_RETRIES cannot be negative")
        if self.signature_tolerance <= 0:
            raise InitializationFailure("STRIPE_SIGNATURE_TOLERANCE must be positive")
        if self.tls_min_version and self.tls_min_version not in TLS_VERSIONS:
            raise InitializationFailure(
                f"STRIPE_TLS_MIN_VERSION must be one of {TLS_VERSIONS}, got {self.tls_min_version!r}"
            )
        if self.ca_bundle_path and not Path(self.ca_bundle_path).is_file():
            raise InitializationFailure(f"STRIPE_CA_BUNDLE not found: {self.ca_bundle_path}")

        site_url = self.site_url.rstrip("/")
        if site_url and not site_url.startswith("http"):
            site_url = "https://" + site_url
        object.__setattr__(self, "site_url", site_url)
        # Redirect targets fall back to the site itself.
        if not self.success_url:
            object.__setattr__(self, "success_url", site_url)
        if not self.cancel_url:
            object.__setattr__(self, "cancel_url", site_url)

    @property
    def webhook_url(self) -> str:
        """Where the Stripe webhook endpoint is expected to point."""
        return f"{self.site_url}{self.webhook_path}"

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "Settings":
        return cls(
            secret_key=_clean_env(env.get("STRIPE_SECRET_KEY")),
            webhook_secret=_clean_env(env.get("STRIPE_WEBHOOK_SECRET")),
            publishable_key=_clean_env(env.get("STRIPE_PUBLISHABLE_KEY")),
            webhook_id=_clean_env(env.get("STRIPE_WEBHOOK_ID")),
            site_url=_clean_env(env.get("SITE_URL")) or "http://localhost:8000",
            success_url=_clean_env(env.get("STRIPE_SUCCESS_URL")),
            cancel_url=_clean_env(env.get("STRIPE_CANCEL_URL")),
            max_network_retries=_int(env, "STRIPE_MAX_NETWORK_RETRIES", 0),
            ca_bundle_path=_clean_env(env.get("STRIPE_CA_BUNDLE")) or None,
            tls_min_version=_clean_env(env.get("STRIPE_TLS_MIN_VERSION")) or None,
            enable_telemetry=_flag(env.get("STRIPE_ENABLE_TELEMETRY")),
            signature_tolerance=_int(env, "STRIPE_SIGNATURE_TOLERANCE", 300),
            api_version=_clean_env(env.get("STRIPE_API_VERSION")) or DEFAULT_API_VERSION,
            webhook_path=_clean_env(env.get("WEBHOOK_PATH")) or DEFAULT_WEBHOOK_PATH,
            redirect_path=_clean_env(env.get("REDIRECT_PATH")) or DEFAULT_REDIRECT_PATH,
            debug_payments=_flag(env.get("DEBUG_PAYMENTS")),
            log_json=_flag(env.get("LOG_JSON"), default=True),
        )


def load_settings(env_file: str | Path | None = None) -> Settings:
    """Load ``.env`` (explicit path or the working directory) and build Settings."""
    load_dotenv(dotenv_path=env_file)
    return Settings.from_env(os.environ)
