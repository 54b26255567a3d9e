"""Configuration for inkproof.

Supports:
- Defaults suitable for a single local authoring instance
- YAML file configuration
- Environment variable overrides (INKPROOF_*)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

DEFAULT_HOME = Path("~/.inkproof")
DEFAULT_AI_ENDPOINT = "https://api.openai.com/v1/chat/completions"
DEFAULT_AI_MODEL = "gpt-3.5-turbo"


@dataclass
class InkproofConfig:
    """Runtime configuration.

    Attributes:
        key_path: Location of the signing key file (private, mode 0600)
        event_log_path: Location of the local JSON-lines provenance log
        retain_text: Keep raw inserted text in the local log (never exported)
        background_writes: Dispatch event-log appends to a writer thread
        queue_size: Bound on pending background writes
        consistency_tolerance: Allowed percentage drift in the verifier
        ai_model: Default model identifier for the completion provider
        ai_endpoint: Chat-completions endpoint for the completion provider
    """

    key_path: Path = field(default_factory=lambda: DEFAULT_HOME / "signing_key.json")
    event_log_path: Path = field(default_factory=lambda: DEFAULT_HOME / "events.jsonl")
    retain_text: bool = False
    background_writes: bool = False
    queue_size: int = 1000
    consistency_tolerance: float = 1e-6
    ai_model: str = DEFAULT_AI_MODEL
    ai_endpoint: str = DEFAULT_AI_ENDPOINT

    def __post_init__(self) -> None:
        """Coerce paths and validate limits."""
        self.key_path = Path(self.key_path).expanduser()
        self.event_log_path = Path(self.event_log_path).expanduser()

        if self.queue_size < 1:
            raise ValueError(f"queue_size must be >= 1, got {self.queue_size}")
        if not 0.0 <= self.consistency_tolerance < 1.0:
            raise ValueError(
                f"consistency_tolerance must be in [0, 1), got {self.consistency_tolerance}"
            )
        if not self.ai_model:
            raise ValueError("ai_model must not be empty")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InkproofConfig:
        """Create from dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_yaml(cls, path: Path) -> InkproofConfig:
        """Load configuration from a YAML file."""
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file must contain a mapping: {path}")
        return cls.from_dict(data)

    @classmethod
    def from_env(cls, base: InkproofConfig | None = None) -> InkproofConfig:
        """Apply environment variable overrides.

        Environment variables:
            INKPROOF_KEY_PATH: Signing key file
            INKPROOF_EVENT_LOG: Provenance log file
            INKPROOF_RETAIN_TEXT: Keep raw text in the local log (true/false)
            INKPROOF_BACKGROUND_WRITES: Async log appends (true/false)
            INKPROOF_QUEUE_SIZE: Max pending background writes
            INKPROOF_AI_MODEL: Default completion model
            INKPROOF_AI_ENDPOINT: Completion endpoint URL
        """
        config = base or cls()
        overrides: dict[str, Any] = {}

        if value := os.getenv("INKPROOF_KEY_PATH"):
            overrides["key_path"] = Path(value)
        if value := os.getenv("INKPROOF_EVENT_LOG"):
            overrides["event_log_path"] = Path(value)
        if value := os.getenv("INKPROOF_RETAIN_TEXT"):
            overrides["retain_text"] = value.lower() == "true"
        if value := os.getenv("INKPROOF_BACKGROUND_WRITES"):
            overrides["background_writes"] = value.lower() == "true"
        if value := os.getenv("INKPROOF_QUEUE_SIZE"):
            overrides["queue_size"] = int(value)
        if value := os.getenv("INKPROOF_AI_MODEL"):
            overrides["ai_model"] = value
        if value := os.getenv("INKPROOF_AI_ENDPOINT"):
            overrides["ai_endpoint"] = value

        return replace(config, **overrides) if overrides else config

    @classmethod
    def load(cls, path: Path | None = None) -> InkproofConfig:
        """Defaults, then YAML file (if given), then environment."""
        base = cls.from_yaml(path) if path is not None else cls()
        return cls.from_env(base)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "key_path": str(self.key_path),
            "event_log_path": str(self.event_log_path),
            "retain_text": self.retain_text,
            "background_writes": self.background_writes,
            "queue_size": self.queue_size,
            "consistency_tolerance": self.consistency_tolerance,
            "ai_model": self.ai_model,
            "ai_endpoint": self.ai_endpoint,
        }
