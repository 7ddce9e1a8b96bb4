"""
Browser configuration for Playwright-driven auditing.

This module provides a validated Pydantic configuration model for the
browser session used by discovery and crawl runs, plus the default
instance.
"""
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from siteaudit.constants import DEFAULT_USER_AGENT


class BrowserConfig(BaseModel):
    """
    Configuration for the Playwright-backed browser session.

    All fields are validated by Pydantic to ensure type safety and valid values.
    """

    headless: bool = Field(
        default=True,
        description="Run browser in headless mode (no visible UI)"
    )

    browser_type: Literal["chromium", "firefox", "webkit"] = Field(
        default="chromium",
        description="Browser engine to use"
    )

    wait_until: Literal["load", "domcontentloaded", "networkidle", "commit"] = Field(
        default="domcontentloaded",
        description="When to consider navigation complete"
    )

    user_agent: Optional[str] = Field(
        default=DEFAULT_USER_AGENT,
        description="User agent for the browser context. None keeps the engine default."
    )

    ignore_https_errors: bool = Field(
        default=True,
        description="Accept self-signed and otherwise invalid certificates"
    )

    viewport_width: int = Field(default=1366, ge=320, le=3840)
    viewport_height: int = Field(default=768, ge=240, le=2160)

    launch_args: List[str] = Field(
        default_factory=list,
        description="Additional browser launch arguments (e.g., '--disable-http2')"
    )

    class Config:
        """Pydantic model configuration."""
        frozen = False
        validate_assignment = True

    def context_options(self) -> dict:
        """Keyword arguments for ``browser.new_context``."""
        options = {
            "ignore_https_errors": self.ignore_https_errors,
            "viewport": {"width": self.viewport_width, "height": self.viewport_height},
        }
        if self.user_agent:
            options["user_agent"] = self.user_agent
        return options

    def launch_options(self) -> dict:
        """Keyword arguments for ``browser_type.launch``."""
        options = {"headless": self.headless}
        if self.launch_args:
            options["args"] = self.launch_args
        return options


# --- Pre-configured Instances ---

DEFAULT_CONFIG = BrowserConfig()
"""
Default configuration used by crawl runs.

DOM-ready navigation with a desktop viewport; certificate errors ignored so
staging sites with self-signed certificates can be audited.
"""
