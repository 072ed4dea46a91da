"""
Outbreak Configuration

Loads configuration from environment variables with sensible defaults, plus the
gameplay tunables shared by the rule engine, resolver, hostile AI and clock.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()

LOCAL_PROVIDERS = ("ollama",)
REMOTE_PROVIDERS = ("openai", "anthropic", "groq", "mistral", "google")
SUPPORTED_PROVIDERS = LOCAL_PROVIDERS + REMOTE_PROVIDERS


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").lower() in ("1", "true", "yes")


class Config:
    """Application configuration loaded from environment variables."""

    # Oracle Provider Configuration
    ORACLE_PROVIDER: str = os.getenv("ORACLE_PROVIDER", "ollama")
    ORACLE_MODEL: str = os.getenv("ORACLE_MODEL", "llama3")
    ORACLE_TEMPERATURE: float = float(os.getenv("ORACLE_TEMPERATURE", "0.2"))
    ORACLE_MAX_TOKENS: int = int(os.getenv("ORACLE_MAX_TOKENS", "500"))

    # Every oracle round-trip is aborted after this many seconds
    ORACLE_TIMEOUT_SECONDS: float = float(os.getenv("ORACLE_TIMEOUT_SECONDS", "30"))

    # Local Ollama server (used when ORACLE_PROVIDER=ollama)
    OLLAMA_BASE_URL: str = os.getenv("OLLAMA_BASE_URL", "http://127.0.0.1:11434")

    # API Keys for remote providers
    ANTHROPIC_API_KEY: str | None = os.getenv("ANTHROPIC_API_KEY")
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")

    # Decision pipeline
    DECISION_MAX_ATTEMPTS: int = int(os.getenv("DECISION_MAX_ATTEMPTS", "2"))

    # Simulation Configuration
    TICK_DELAY_SECONDS: float = float(os.getenv("TICK_DELAY_SECONDS", "0.5"))
    MEMORY_SUMMARY_INTERVAL: int = int(os.getenv("MEMORY_SUMMARY_INTERVAL", "10"))

    # Output
    DEBUG_ORACLE: bool = _env_flag("DEBUG_ORACLE")

    # Project Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent
    SNAPSHOT_DIR: Path = Path(os.getenv("SNAPSHOT_DIR", "snapshots"))

    @classmethod
    def validate(cls, provider: str | None = None) -> None:
        """Validate configuration and raise errors if required values are missing."""
        provider = (provider or cls.ORACLE_PROVIDER).lower()

        if provider not in SUPPORTED_PROVIDERS:
            raise ValueError(
                f"Unknown oracle provider '{provider}'. "
                f"Choose one of: {', '.join(SUPPORTED_PROVIDERS)}"
            )

        if provider == "anthropic" and not cls.ANTHROPIC_API_KEY:
            raise ValueError(
                "ANTHROPIC_API_KEY is required when using the 'anthropic' provider"
            )

        if provider == "openai" and not cls.OPENAI_API_KEY:
            raise ValueError(
                "OPENAI_API_KEY is required when using the 'openai' provider. "
                "For a local model, set ORACLE_PROVIDER=ollama instead."
            )

        if cls.ORACLE_TIMEOUT_SECONDS <= 0:
            raise ValueError("ORACLE_TIMEOUT_SECONDS must be positive")

    @classmethod
    def display(cls) -> str:
        """Return a formatted string showing current configuration."""
        lines = [
            "Outbreak Configuration:",
            f"  Oracle Provider: {cls.ORACLE_PROVIDER}",
            f"  Oracle Model: {cls.ORACLE_MODEL}",
            f"  Oracle Timeout: {cls.ORACLE_TIMEOUT_SECONDS:g}s",
            f"  Decision Attempts: {cls.DECISION_MAX_ATTEMPTS}",
            f"  Tick Delay: {cls.TICK_DELAY_SECONDS:g}s",
            f"  Snapshots: {cls.SNAPSHOT_DIR}",
        ]
        return "\n".join(lines)


@dataclass(frozen=True)
class SimulationSettings:
    """Gameplay constants for one simulation.

    Every component receives the same settings object from the clock, so a
    scenario (or a test) can tighten a single threshold without touching code.
    """

    # Map
    map_width: float = 500.0
    map_height: float = 400.0

    # Hostile entities
    hostile_speed: float = 5.0
    hostile_attack_range: float = 15.0
    hostile_damage: float = 10.0
    hostile_start_health: float = 100.0
    base_attack_radius: float = 50.0
    base_damage: float = 5.0
    first_spawn_tick: int = 10
    spawn_interval_min: int = 10
    spawn_interval_max: int = 29
    counter_attack_factor: float = 0.5

    # Threat perception
    fear_radius: float = 100.0
    fear_gain_per_hostile: float = 5.0
    fear_decay: float = 10.0
    hostile_perception_radius: float = 100.0
    weapon_perception_bonus: float = 20.0

    # Passive vitals
    hunger_rate: float = 0.5
    happiness_decay: float = 0.2
    hungry_unhappiness_threshold: float = 70.0
    hungry_unhappiness_penalty: float = 1.0
    calm_fear_threshold: float = 10.0
    calm_happiness_bonus: float = 0.5
    eat_threshold: float = 80.0
    medical_threshold: float = 30.0

    # Actions
    wait_recovery: float = 5.0
    energy_delta_limit: float = 10.0
    relationship_gain_per_message: float = 5.0
    message_buffer_size: int = 5

    # Rules
    low_energy_threshold: float = 20.0
    private_property_threshold: float = 20.0
    night_period: int = 50
    night_start: int = 40
    noise_keywords: tuple[str, ...] = ("sing", "party", "shout", "yell", "loud", "noise")

    @property
    def spawn_interval(self) -> tuple[int, int]:
        return (self.spawn_interval_min, self.spawn_interval_max)


DEFAULT_SETTINGS = SimulationSettings()
