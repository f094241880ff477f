"""
Discovery Engine — Configuration
================================
Version 1.0 — October 2026

Configuration classes for the engine.

Repair thresholds are deliberately absent: they belong to the
governance policy and are read from there only.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dotenv import load_dotenv

from .errors import ConfigurationError


# Env var holding the API key for each provider ("local" needs none)
PROVIDER_API_KEYS: Dict[str, Optional[str]] = {
    "google": "GOOGLE_API_KEY",
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "local": None,
}

SEARCH_API_KEY = "TAVILY_API_KEY"


@dataclass
class ModelConfig:
    """LLM model configuration."""
    provider: str  # "google", "openai", "anthropic", "local"
    model_name: str
    temperature: float = 0.3
    max_tokens: Optional[int] = None


@dataclass
class RetryConfig:
    """Retry configuration handed to the chat clients."""
    max_retries: int = 3
    timeout: float = 60.0


@dataclass
class EngineConfig:
    """Main engine configuration."""

    reasoning_model: ModelConfig = field(default_factory=lambda: ModelConfig(
        provider="google",
        model_name="gemini-2.5-flash",
        temperature=0.3
    ))

    retry_config: RetryConfig = field(default_factory=RetryConfig)

    # Discovery loop limits
    max_cycles: int = 5
    eureka_threshold: float = 0.75       # Novelty score required to attempt validation
    max_waves_per_cycle: int = 25        # Caps draining a plan that can never finish

    # Tools
    search_max_results: int = 5

    # Goals containing this phrase get their DataCollection nodes failure-injected
    failure_injection_phrase: str = "FAIL DURING THE DATA COLLECTION"

    # Output
    events_file: Optional[str] = None

    # Dev/Test flags
    mock_mode: bool = False

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "EngineConfig":
        """Build a config from DISCOVERY_* environment variables."""
        if load_env_file:
            load_dotenv()

        config = cls()
        provider = os.getenv("DISCOVERY_PROVIDER")
        model_name = os.getenv("DISCOVERY_MODEL")
        if provider or model_name:
            config.reasoning_model = ModelConfig(
                provider=provider or config.reasoning_model.provider,
                model_name=model_name or config.reasoning_model.model_name,
                temperature=config.reasoning_model.temperature,
            )

        try:
            if os.getenv("DISCOVERY_MAX_CYCLES"):
                config.max_cycles = int(os.environ["DISCOVERY_MAX_CYCLES"])
            if os.getenv("DISCOVERY_EUREKA_THRESHOLD"):
                config.eureka_threshold = float(os.environ["DISCOVERY_EUREKA_THRESHOLD"])
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting in environment: {e}") from e

        mock = os.getenv("DISCOVERY_MOCK_MODE", "").strip().lower()
        config.mock_mode = mock in ("1", "true", "yes", "on")
        return config


def validate_config(config: EngineConfig) -> None:
    """
    Check the configuration before a run starts.

    Raises:
        ConfigurationError: listing every problem found
    """
    problems: List[str] = []

    if config.max_cycles < 1:
        problems.append(f"max_cycles must be at least 1 (got {config.max_cycles})")
    if not 0.0 <= config.eureka_threshold <= 1.0:
        problems.append(f"eureka_threshold must be within [0, 1] (got {config.eureka_threshold})")
    if config.max_waves_per_cycle < 1:
        problems.append(f"max_waves_per_cycle must be at least 1 (got {config.max_waves_per_cycle})")

    provider = config.reasoning_model.provider.lower()
    if provider not in PROVIDER_API_KEYS:
        problems.append(f"Unsupported LLM provider: {provider}")
    elif not config.mock_mode:
        key_name = PROVIDER_API_KEYS[provider]
        if key_name and not os.getenv(key_name):
            problems.append(f"{key_name} is not configured")
        if not os.getenv(SEARCH_API_KEY):
            problems.append(f"{SEARCH_API_KEY} is not configured")

    if problems:
        raise ConfigurationError(problems)
