"""Environment-driven configuration."""

import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Registry enumeration order; the first configured entry is the default provider
PROVIDER_KEY_ENV: Dict[str, str] = {
    "groq": "GROQ_API_KEY",
    "glhf": "GLHF_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
}


def env_flag(name: str) -> bool:
    """Read a boolean environment variable; only 1/true/yes/on enable it."""
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


def load_env_file() -> Optional[str]:
    """Load a .env file from the first of several likely locations.

    Returns:
        The path that was loaded, or None if no file was found.
    """
    # 1. Directory of the main entry point
    main_dir = os.path.dirname(os.path.abspath(sys.argv[0]))
    # 2. Its parent (entry point in a subdirectory)
    parent_dir = os.path.dirname(main_dir)
    # 3. Current working directory
    cwd = os.getcwd()
    # 4. Package directory
    script_dir = os.path.dirname(os.path.abspath(__file__))

    for directory in (main_dir, parent_dir, cwd, script_dir):
        env_path = os.path.join(directory, ".env")
        if os.path.exists(env_path):
            logger.info(f"Loading .env from {env_path}")
            load_dotenv(env_path)
            return env_path

    logger.info("No .env file found in expected locations")
    return None


@dataclass
class Settings:
    """Runtime settings for providers, memory and search."""

    api_keys: Dict[str, str] = field(default_factory=dict)
    searxng_url: str = "https://searx.be/search"
    app_url: str = "http://localhost:3000"
    app_name: str = "switchboard"
    redis_url: str = ""
    timeout: float = 60.0
    memory_ttl_seconds: int = 24 * 60 * 60
    debug: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        api_keys = {}
        for name, env_var in PROVIDER_KEY_ENV.items():
            value = os.getenv(env_var, "").strip()
            if value:
                api_keys[name] = value

        return cls(
            api_keys=api_keys,
            searxng_url=os.getenv("SEARXNG_URL", "https://searx.be/search"),
            app_url=os.getenv("APP_URL", "http://localhost:3000"),
            app_name=os.getenv("APP_NAME", "switchboard"),
            redis_url=os.getenv("REDIS_URL", ""),
            # Milliseconds, like the other timeout knobs
            timeout=float(os.getenv("SWITCHBOARD_TIMEOUT", "60000")) / 1000,
            memory_ttl_seconds=int(os.getenv("SWITCHBOARD_MEMORY_TTL", str(24 * 60 * 60))),
            debug=env_flag("SWITCHBOARD_DEBUG"),
        )

    def api_key_for(self, provider: str) -> Optional[str]:
        """Return the configured API key for a provider, if any."""
        return self.api_keys.get(provider.lower()) or None

    def available_providers(self) -> List[str]:
        """Provider names with a configured key, in registry order."""
        return [name for name in PROVIDER_KEY_ENV if self.api_key_for(name)]
