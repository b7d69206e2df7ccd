"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Literal, Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.scoring import ScoringWeights
from .domain.validation import MAX_DURATION_MINUTES


class DefaultsConfig(BaseModel):
    """Default settings for scheduling requests."""
    duration_minutes: int = 30
    title: str = "New Meeting"
    window_days: int = 7

    @field_validator("duration_minutes")
    @classmethod
    def validate_duration(cls, value: int) -> int:
        """Ensure the default duration is one the validator accepts."""
        if not 0 < value <= MAX_DURATION_MINUTES:
            raise ValueError(
                f"duration_minutes must be between 1 and {MAX_DURATION_MINUTES}, got {value}"
            )
        return value

    @field_validator("window_days")
    @classmethod
    def validate_window_days(cls, value: int) -> int:
        if not 0 < value <= 365:
            raise ValueError(f"window_days must be between 1 and 365, got {value}")
        return value


class SearchConfig(BaseModel):
    """Slot search tuning."""
    step_minutes: int = 15
    max_concurrent_fetches: int = 4
    search_timeout_seconds: Optional[float] = None

    @field_validator("step_minutes", "max_concurrent_fetches")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f"Value must be greater than zero, got {value}")
        return value

    @field_validator("search_timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value <= 0:
            raise ValueError("search_timeout_seconds must be greater than zero")
        return value


class ScoringConfig(BaseModel):
    """Weights of the slot scoring heuristics."""
    working_hours: float = 1.0
    early_slot: float = 0.8
    gap_minimization: float = 0.6
    buffer_time: float = 0.4

    def to_weights(self) -> ScoringWeights:
        return ScoringWeights(
            working_hours=self.working_hours,
            early_slot=self.early_slot,
            gap_minimization=self.gap_minimization,
            buffer_time=self.buffer_time,
        )


class StoreConfig(BaseModel):
    """Where users and calendar events live."""
    backend: Literal["json", "graph"] = "json"
    path: Path = Path("meetslot_data.json")


class GraphConfig(BaseModel):
    """Azure AD application used for Microsoft Graph access."""
    client_id: str
    tenant_id: str

    def get_authority_url(self) -> str:
        """Get the formatted authority URL."""
        return f"https://login.microsoftonline.com/{self.tenant_id}"


class AppConfig(BaseModel):
    """Top-level settings for meetslot."""
    timezone: str = "UTC"
    store: StoreConfig = Field(default_factory=StoreConfig)
    graph: Optional[GraphConfig] = None
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except (KeyError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @model_validator(mode="after")
    def validate_graph_settings(self) -> "AppConfig":
        """The Graph backend needs application credentials."""
        if self.store.backend == "graph" and self.graph is None:
            raise ValueError("store.backend 'graph' requires a 'graph' section with client_id and tenant_id")
        return self

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Read and validate a YAML configuration file.

        Args:
            config_path: YAML file with any subset of the sections above

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If the YAML is malformed or a value fails validation
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "AppConfig":
        """
        Load an explicit config file, or the default one when present.

        Without an explicit path and without a default file, built-in defaults apply.
        """
        if config_path is not None:
            return cls.load_from_yaml(config_path)

        default_path = get_default_config_path()
        if default_path.exists():
            return cls.load_from_yaml(default_path)
        return cls()


def get_default_config_path() -> Path:
    """Return ./config.yaml, or config.yaml next to the package when absent."""
    config_path = Path.cwd() / "config.yaml"

    if not config_path.exists():
        # source checkout
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
