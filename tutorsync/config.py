# tutorsync/config.py

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from tutorsync.errors import ConfigError

DEFAULT_SYNC_INTERVAL = 25


def _clean(value: str) -> str:
    # env files often wrap keys in quotes and escape newlines
    return value.strip().strip("\"'").replace("\\n", "\n")


@dataclass(frozen=True)
class AppConfig:
    credentials_path: str = ""
    firebase_project_id: str = ""
    firebase_client_email: str = ""
    firebase_private_key: str = field(default="", repr=False)
    sync_interval: int = DEFAULT_SYNC_INTERVAL
    log_level: str = "INFO"
    log_file: str = ""

    @property
    def has_inline_service_account(self) -> bool:
        return bool(self.firebase_client_email and self.firebase_private_key)

    def service_account_info(self) -> dict:
        """Inline service-account fields in the shape google-auth expects."""
        return {
            "type": "service_account",
            "project_id": self.firebase_project_id,
            "client_email": self.firebase_client_email,
            "private_key": self.firebase_private_key,
            "token_uri": "https://oauth2.googleapis.com/token",
        }


def load_config() -> AppConfig:
    load_dotenv()

    cred_path = os.getenv("GOOGLE_APPLICATION_CREDENTIALS", "").strip()
    project_id = _clean(os.getenv("FIREBASE_PROJECT_ID", ""))
    client_email = _clean(os.getenv("FIREBASE_CLIENT_EMAIL", ""))
    private_key = _clean(os.getenv("FIREBASE_PRIVATE_KEY", ""))
    interval_raw = os.getenv("SYNC_INTERVAL_SECONDS", "").strip()

    if not cred_path and not (client_email and private_key):
        raise ConfigError(
            "Missing env var: GOOGLE_APPLICATION_CREDENTIALS "
            "(or FIREBASE_CLIENT_EMAIL + FIREBASE_PRIVATE_KEY)"
        )
    if not cred_path and not project_id:
        raise ConfigError("Missing env var: FIREBASE_PROJECT_ID")

    try:
        interval = int(interval_raw) if interval_raw else DEFAULT_SYNC_INTERVAL
    except ValueError as e:
        raise ConfigError(f"SYNC_INTERVAL_SECONDS must be an integer, got {interval_raw!r}") from e
    if interval <= 0:
        raise ConfigError("SYNC_INTERVAL_SECONDS must be positive")

    return AppConfig(
        credentials_path=cred_path,
        firebase_project_id=project_id,
        firebase_client_email=client_email,
        firebase_private_key=private_key,
        sync_interval=interval,
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        log_file=os.getenv("LOG_FILE", "").strip(),
    )
