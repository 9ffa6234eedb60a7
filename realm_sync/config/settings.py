"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

SECRETS_ROOT = Path("/run/secrets")

AUTH_TOKEN_FILE = "token-file"
AUTH_SERVICE_ACCOUNT = "service-account"
AUTH_ADMIN = "admin"


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = SECRETS_ROOT / secret_name

    # Priority 1: Read from /run/secrets
    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                print(f"[settings] ✓ Loaded {secret_name} from {SECRETS_ROOT}")
                return secret_value
        except OSError as e:
            print(f"[settings] ✗ Failed to read {SECRETS_ROOT}/{secret_name}: {e}")

    # Priority 2: Fallback to environment variable
    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            print(f"[settings] ✓ Loaded {env_var} from environment (fallback)")
            return secret_value

    return None


def _float_env(var_name: str, default: float) -> float:
    raw = os.environ.get(var_name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {var_name} must be a number, got {raw!r}") from None


@dataclass
class AppConfig:
    """Application configuration container."""
    # Keycloak
    keycloak_url: str
    keycloak_service_realm: str = "master"

    # Admin credentials
    keycloak_admin: str = ""
    keycloak_admin_password: str = ""

    # Service Account
    keycloak_service_client_id: str = ""
    keycloak_service_client_secret: str = ""

    # Pre-issued token
    keycloak_token_file: str = ""

    # Timeouts (seconds)
    request_timeout: float = 5.0
    reconcile_timeout: float = 60.0

    # Secret store for user credentials and client secrets
    secrets_dir: str = str(SECRETS_ROOT)

    log_level: str = "INFO"

    @property
    def auth_method(self) -> str:
        """Which credentials the adapter is built from.

        Priority:
        1. Token file (KEYCLOAK_TOKEN_FILE)
        2. Service account (client id + secret)
        3. Static admin credentials

        Raises:
            ValueError: If no usable credentials are configured
        """
        if self.keycloak_token_file:
            return AUTH_TOKEN_FILE
        if self.keycloak_service_client_id and self.keycloak_service_client_secret:
            return AUTH_SERVICE_ACCOUNT
        if self.keycloak_admin and self.keycloak_admin_password:
            return AUTH_ADMIN
        raise ValueError(
            "No Keycloak credentials configured. Set KEYCLOAK_TOKEN_FILE, "
            "KEYCLOAK_SERVICE_CLIENT_ID/KEYCLOAK_SERVICE_CLIENT_SECRET or KEYCLOAK_ADMIN/KEYCLOAK_ADMIN_PASSWORD."
        )

    def read_token(self) -> bytes:
        return Path(self.keycloak_token_file).read_bytes()


def load_settings() -> AppConfig:
    """Load application settings from environment and /run/secrets."""
    keycloak_url = os.environ.get("KEYCLOAK_URL", "").strip()
    if not keycloak_url:
        raise RuntimeError("Environment variable KEYCLOAK_URL is required.")

    # ─────────────────────────────────────────────────────────────────────────
    # Load secrets from /run/secrets (Docker secrets pattern)
    # Priority: /run/secrets > environment variables
    # ─────────────────────────────────────────────────────────────────────────
    keycloak_admin_password = _load_secret_from_file("keycloak_admin_password", "KEYCLOAK_ADMIN_PASSWORD") or ""
    keycloak_service_client_secret = _load_secret_from_file(
        "keycloak_service_client_secret",
        "KEYCLOAK_SERVICE_CLIENT_SECRET"
    ) or ""

    config = AppConfig(
        keycloak_url=keycloak_url,
        keycloak_service_realm=os.environ.get("KEYCLOAK_SERVICE_REALM", "master"),
        keycloak_admin=os.environ.get("KEYCLOAK_ADMIN", ""),
        keycloak_admin_password=keycloak_admin_password,
        keycloak_service_client_id=os.environ.get("KEYCLOAK_SERVICE_CLIENT_ID", ""),
        keycloak_service_client_secret=keycloak_service_client_secret,
        keycloak_token_file=os.environ.get("KEYCLOAK_TOKEN_FILE", ""),
        request_timeout=_float_env("KEYCLOAK_REQUEST_TIMEOUT", 5.0),
        reconcile_timeout=_float_env("RECONCILE_TIMEOUT", 60.0),
        secrets_dir=os.environ.get("SECRETS_DIR", str(SECRETS_ROOT)),
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    )

    try:
        auth_method = config.auth_method
    except ValueError as exc:
        raise RuntimeError(str(exc)) from exc

    print(f"[settings] keycloak={keycloak_url}; auth={auth_method}; realm={config.keycloak_service_realm}")
    return config
