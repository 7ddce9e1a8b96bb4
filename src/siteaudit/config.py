from dotenv import load_dotenv
from dataclasses import dataclass, field
from pathlib import Path
from typing import Tuple
import json
import os

from siteaudit.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_DISCOVERY_TIMEOUT_SECONDS,
    DEFAULT_MAX_DISCOVERY_PAGES,
    DEFAULT_NAVIGATION_TIMEOUT_SECONDS,
    DEFAULT_PROBE_CONCURRENCY,
    DEFAULT_PROBE_TIMEOUT_SECONDS,
    DEFAULT_SETTLE_DELAY_SECONDS,
    DEFAULT_USER_AGENT,
    SITEMAP_FETCH_BATCH_SIZE,
    SITEMAP_FETCH_TIMEOUT_SECONDS,
    SITEMAP_MAX_REDIRECTS,
    SKIP_EXTERNAL_DOMAINS,
)

load_dotenv()  # Loads variables from .env file


class Settings:
    """
    Manages application settings loaded from environment variables.
    """
    USER_AGENT = os.getenv("SITEAUDIT_USER_AGENT", DEFAULT_USER_AGENT)
    LOG_LEVEL = os.getenv("SITEAUDIT_LOG_LEVEL", "INFO")
    LOG_FILE = os.getenv("SITEAUDIT_LOG_FILE")
    OUTPUT_DIR = os.getenv("SITEAUDIT_OUTPUT_DIR", "reports")
    HEADLESS = os.getenv("SITEAUDIT_HEADLESS", "true").lower() not in ("0", "false", "no")


settings = Settings()


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class AuditConfig:
    """Tunable limits and timeouts for discovery and crawl runs."""

    # Browser navigation (seconds)
    navigation_timeout: float = DEFAULT_NAVIGATION_TIMEOUT_SECONDS
    discovery_timeout: float = DEFAULT_DISCOVERY_TIMEOUT_SECONDS
    settle_delay: float = DEFAULT_SETTLE_DELAY_SECONDS

    # Existence checks
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS
    probe_concurrency: int = DEFAULT_PROBE_CONCURRENCY

    # Scheduling
    batch_size: int = DEFAULT_BATCH_SIZE
    max_discovery_pages: int = DEFAULT_MAX_DISCOVERY_PAGES

    # Sitemaps
    sitemap_batch_size: int = SITEMAP_FETCH_BATCH_SIZE
    sitemap_max_redirects: int = SITEMAP_MAX_REDIRECTS
    sitemap_timeout: float = SITEMAP_FETCH_TIMEOUT_SECONDS

    # Selective-mode policy: URLs from discovery are assumed valid without a probe
    trust_discovered: bool = True

    user_agent: str = DEFAULT_USER_AGENT
    skip_domains: Tuple[str, ...] = field(default_factory=lambda: tuple(SKIP_EXTERNAL_DOMAINS))

    @classmethod
    def from_env(cls) -> "AuditConfig":
        """Load configuration from environment variables.

        Environment variables should be prefixed with SITEAUDIT_
        e.g., SITEAUDIT_NAVIGATION_TIMEOUT=45

        Returns:
            AuditConfig with values from environment
        """
        config = cls()
        config.user_agent = settings.USER_AGENT
        prefix = "SITEAUDIT_"

        for field_name, config_field in config.__dataclass_fields__.items():
            env_value = os.getenv(f"{prefix}{field_name.upper()}")
            if env_value is None:
                continue

            field_type = config_field.type
            try:
                if field_type == int:
                    setattr(config, field_name, int(env_value))
                elif field_type == float:
                    setattr(config, field_name, float(env_value))
                elif field_type == bool:
                    setattr(config, field_name, _parse_bool(env_value))
                elif field_type == str:
                    setattr(config, field_name, env_value)
                elif field_name == "skip_domains":
                    setattr(config, field_name, tuple(
                        d.strip().lower() for d in env_value.split(",") if d.strip()
                    ))
            except ValueError:
                pass  # Keep default if conversion fails

        return config

    @classmethod
    def from_file(cls, path: str) -> "AuditConfig":
        """Load configuration from a JSON file.

        Unknown keys are ignored; a missing file yields the defaults.

        Args:
            path: Path to JSON configuration file

        Returns:
            AuditConfig with values from file
        """
        config = cls()
        file_path = Path(path)

        if not file_path.exists():
            return config

        with open(file_path, 'r') as f:
            data = json.load(f)

        audit_data = data.get('audit', data)

        for field_name in config.__dataclass_fields__:
            if field_name in audit_data:
                value = audit_data[field_name]
                if field_name == "skip_domains":
                    value = tuple(value)
                setattr(config, field_name, value)

        return config

    def to_dict(self) -> dict:
        """Convert configuration to a JSON-compatible dictionary."""
        result = {}
        for field_name in self.__dataclass_fields__:
            value = getattr(self, field_name)
            result[field_name] = list(value) if isinstance(value, tuple) else value
        return result

    def save_to_file(self, path: str) -> None:
        """Save current configuration to a JSON file.

        Args:
            path: Path to save configuration
        """
        with open(path, 'w') as f:
            json.dump({'audit': self.to_dict()}, f, indent=2)
