from __future__ import annotations

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    app_name: str = "mongodrop"
    log_level: str = "INFO"

    # Bind address for the HTTP surface.
    host: str = "0.0.0.0"
    port: int = 3000

    # Connection URI handed to the dump/restore binaries; required at startup.
    mongo_uri: str | None = None
    # Executables invoked for dumps and restores.
    dump_command: str = "mongodump"
    restore_command: str = "mongorestore"
    # Local directory for transient archive copies during upload/restore.
    backup_staging_dir: str = "backups"

    # Dropbox access token for artifact storage; required at startup.
    dropbox_token: str | None = None
    # Remote folder holding artifacts; empty string is the app root.
    dropbox_folder: str = ""
    dropbox_api_url: str = "https://api.dropboxapi.com/2"
    dropbox_content_url: str = "https://content.dropboxapi.com/2"
    # Centralize external call timeouts for storage requests (ms).
    ext_call_timeout_ms: int = 30000

    # Hex or base64 encoded HMAC key used to verify bearer tokens.
    jwt_secret: str | None = None
    jwt_algorithm: str = "HS256"
    # Claim carrying the caller's role.
    jwt_role_claim: str = "role"
    # Allow bounded clock skew when checking exp/nbf.
    jwt_leeway_seconds: int = 0

    # Timezone used to evaluate daily/weekly/monthly cron triggers.
    schedule_timezone: str = "UTC"
    # Seconds a missed scheduled run may still start late.
    schedule_misfire_grace_s: int = 300


@lru_cache
def get_settings() -> Settings:
    return Settings()
