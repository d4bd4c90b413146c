"""Configuration management for the k3sctl application."""
import os
from typing import Optional
from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()

class Config:
    """Application configuration with sensible defaults."""

    # k3s release pinned for every install (empty means the script's default channel)
    K3S_VERSION: Optional[str] = os.getenv("K3S_VERSION") or None

    # Optional local override for the bundled install script
    INSTALL_SCRIPT: str = os.getenv("K3SCTL_INSTALL_SCRIPT", "")

    # Timeouts (in seconds)
    SSH_TIMEOUT: int = int(os.getenv("SSH_TIMEOUT", "10"))

    # Readiness probe: fixed attempt count with a fixed sleep between attempts
    SSH_READY_ATTEMPTS: int = int(os.getenv("SSH_READY_ATTEMPTS", "10"))
    SSH_READY_DELAY: float = float(os.getenv("SSH_READY_DELAY", "5.0"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT: str = os.getenv(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Security
    REDACT_KEYS: tuple = ("password", "secret", "token", "private_key", "signing_key")

    @classmethod
    def validate(cls) -> None:
        """Validate numeric configuration."""
        if cls.SSH_READY_ATTEMPTS < 1:
            raise ValueError("SSH_READY_ATTEMPTS must be at least 1")
        if cls.SSH_READY_DELAY < 0:
            raise ValueError("SSH_READY_DELAY must not be negative")

# Don't validate on import to allow for dynamic configuration
# Call Config.validate() explicitly when needed
