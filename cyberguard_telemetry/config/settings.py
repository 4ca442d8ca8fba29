"""Environment variables read by the telemetry client."""

import os
from typing import Dict, Optional, Tuple

# Environment variable -> (config section, key) it overrides
CONFIG_OVERRIDES: Dict[str, Tuple[str, str]] = {
    "CYBERGUARD_BASE_URL": ("backend", "base_url"),
    "CYBERGUARD_MODE": ("polling", "mode"),
    "CYBERGUARD_TOKEN_FILE": ("auth", "token_file"),
}


class Settings:
    """Application settings from environment variables."""

    @staticmethod
    def get(key: str, default: Optional[str] = None, required: bool = False) -> str:
        """
        Read one environment variable.

        Raises:
            ValueError: If ``required`` and the variable is unset or empty
        """
        value = os.getenv(key, default)
        if required and not value:
            raise ValueError(f"Required environment variable not set: {key}")
        return value or ""

    @staticmethod
    def config_overrides() -> Dict[Tuple[str, str], str]:
        """
        Collect config values overridden from the environment.

        Returns:
            Dict mapping (section, key) to the value of every override
            variable that is set
        """
        overrides = {}
        for var, target in CONFIG_OVERRIDES.items():
            value = Settings.get(var)
            if value:
                overrides[target] = value
        return overrides

    @staticmethod
    def log_level() -> str:
        return Settings.get("LOG_LEVEL", "INFO").upper()

    @staticmethod
    def login_password() -> str:
        """
        Password used by ``--login``.

        Raises:
            ValueError: If CYBERGUARD_PASSWORD is not set
        """
        return Settings.get("CYBERGUARD_PASSWORD", required=True)
