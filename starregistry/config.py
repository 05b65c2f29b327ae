"""
Registry Configuration

Environment-based settings for the challenge gate and the HTTP server.

Environment Variables:
    STARREGISTRY_CHALLENGE_WINDOW_SECONDS: Max challenge age (default 300)
    STARREGISTRY_CHALLENGE_DOMAIN: Challenge domain tag (default starRegistry)
    STARREGISTRY_HOST: Bind address for the API server (default 127.0.0.1)
    STARREGISTRY_PORT: Port for the API server (default 8000)

There is no storage configuration: the chain lives in memory
and starts again from genesis on every process start.
"""

import os
from dataclasses import dataclass

from .core.ownership import CHALLENGE_DOMAIN, CHALLENGE_WINDOW_SECONDS


@dataclass
class RegistryConfig:
    """Star registry settings."""
    challenge_window_seconds: int = CHALLENGE_WINDOW_SECONDS
    challenge_domain: str = CHALLENGE_DOMAIN
    host: str = "127.0.0.1"
    port: int = 8000

    def __post_init__(self) -> None:
        if self.challenge_window_seconds <= 0:
            raise ValueError(
                f"Challenge window must be positive, got {self.challenge_window_seconds}"
            )
        if not self.challenge_domain or ":" in self.challenge_domain:
            raise ValueError(
                f"Challenge domain must be non-empty and contain no ':', "
                f"got '{self.challenge_domain}'"
            )

    @classmethod
    def from_env(cls) -> "RegistryConfig":
        """
        Load configuration from environment variables.

        Raises:
            ValueError: If a numeric variable is not an integer or the
                        window is not positive
        """
        return cls(
            challenge_window_seconds=int(
                os.getenv("STARREGISTRY_CHALLENGE_WINDOW_SECONDS", str(CHALLENGE_WINDOW_SECONDS))
            ),
            challenge_domain=os.getenv("STARREGISTRY_CHALLENGE_DOMAIN", CHALLENGE_DOMAIN),
            host=os.getenv("STARREGISTRY_HOST", "127.0.0.1"),
            port=int(os.getenv("STARREGISTRY_PORT", "8000")),
        )
