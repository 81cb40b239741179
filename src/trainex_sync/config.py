"""Sync configuration loaded from environment variables.

Portal paths are configuration, not contract: the TraiNex export endpoint is
undocumented and its layout changes between installations.
"""

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings


class SyncConfig(BaseSettings):
    """Sync configuration loaded from environment variables.

    Settings are loaded from ``TRAINEX_*`` environment variables with sensible
    defaults. For local development, create a .env file in the project root.
    """

    # Portal layout (browser-only portal, no API exists)
    base_url: str = Field(
        default="https://trex.phwt.de/phwt-trainex/",
        description="TraiNex landing page, also the base for relative links",
    )
    export_path: str = Field(
        default="cfm/einsatzplan/einsatzplan_listenansicht_iCal.cfm",
        description="Path of the iCal export script relative to base_url",
    )
    bootstrap_paths: list[str] = Field(
        default=[
            "cfm/einsatzplan/einsatzplan_listenansicht.cfm",
            "cfm/einsatzplan/einsatzplan.cfm",
            "cfm/index.cfm",
        ],
        description="Pages visited in order to pick up session tokens",
    )
    calendar_index_path: str = Field(
        default="cfm/einsatzplan/index.cfm",
        description="Calendar index page scanned for an export link",
    )

    # Credentials for the CLI only; the engine receives them per call
    username: str = Field(default="", description="TraiNex login")
    password: SecretStr = Field(default=SecretStr(""), description="TraiNex password")

    # Browser
    timeout_ms: int = Field(
        default=45000,
        description="Default timeout applied to every page operation",
    )
    network_idle_timeout_ms: int = Field(
        default=10000,
        description="Upper bound for best-effort network-idle waits",
    )
    headless: bool = Field(default=True, description="Run Chromium headless")
    profile_dir: str | None = Field(
        default=None,
        description="Persistent Chromium profile directory (ephemeral if unset)",
    )
    cache_dir: str | None = Field(
        default=None,
        description="Dedicated Chromium disk-cache directory",
    )
    block_resources: bool = Field(
        default=True,
        description="Abort image/font/media requests during the sync",
    )

    # Local data (last calendar cache, sync log)
    data_dir: str = Field(
        default="data",
        description="Directory for the cached calendar and sync log",
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "TRAINEX_",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def export_url(self) -> str:
        """Absolute URL of the export script without any query."""
        return f"{self.base_url.rstrip('/')}/{self.export_path.lstrip('/')}"

    def page_url(self, path: str) -> str:
        """Absolute URL for a portal path."""
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"


# Singleton pattern
_config: SyncConfig | None = None


def get_config() -> SyncConfig:
    """Get the sync configuration singleton.

    Returns:
        SyncConfig: Sync configuration instance
    """
    global _config
    if _config is None:
        _config = SyncConfig()
    return _config
