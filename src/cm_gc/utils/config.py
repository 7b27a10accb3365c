"""
Configuration du garbage collector.

Priorité: flags CLI > variables d'environnement > valeurs par défaut.
L'objet est figé une fois construit; les overrides produisent une copie.
"""
import os
from typing import List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from cm_gc.core.inuse import MATCH_MODES, MATCH_SUBSTRING

DEFAULT_NAMESPACE = "default"
# 100 ans; keep_days alimente timedelta(days=...)
MAX_KEEP_DAYS = 36500

# variable d'environnement -> champ
ENV_FIELDS = {
    "NAMESPACE": "namespaces",
    "KEEP_LAST": "keep_last",
    "KEEP_DAYS": "keep_days",
    "KEEP_LAST_FROM_ROLLOUT": "keep_last_from_rollout",
    "DRY_RUN": "dry_run",
    "MATCH_MODE": "match_mode",
    "LOG_LEVEL": "log_level",
    "LOG_FORMAT": "log_format",
}

LOG_LEVEL_ALIASES = {"warn": "WARNING", "fatal": "CRITICAL"}
VALID_LOG_LEVELS = ["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]


class ConfigError(ValueError):
    pass


def parse_namespaces(raw: Optional[str], default: str = DEFAULT_NAMESPACE) -> List[str]:
    """
    "a, b,,a" -> ["a", "b"]. Une valeur vide ou None retombe sur le défaut.
    """
    namespaces = []
    for part in (raw or "").split(","):
        ns = part.strip()
        if ns and ns not in namespaces:
            namespaces.append(ns)
    return namespaces or [default]


class GCConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    namespaces: List[str] = Field(default_factory=lambda: [DEFAULT_NAMESPACE])
    keep_last: int = Field(default=5, ge=0)
    keep_days: int = Field(default=7, ge=0, le=MAX_KEEP_DAYS)
    keep_last_from_rollout: bool = False
    dry_run: bool = True
    match_mode: str = MATCH_SUBSTRING
    log_level: str = "INFO"
    log_format: Literal["text", "json"] = "text"

    @field_validator("namespaces", mode="before")
    @classmethod
    def split_namespaces(cls, v):
        if isinstance(v, str):
            return parse_namespaces(v)
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        level = str(v).strip().lower()
        level = LOG_LEVEL_ALIASES.get(level, level.upper())
        if level not in VALID_LOG_LEVELS:
            raise ValueError(f"invalid log level {v!r}, expected one of {', '.join(VALID_LOG_LEVELS)}")
        return level

    @field_validator("match_mode", "log_format", mode="before")
    @classmethod
    def lowercase(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("match_mode")
    @classmethod
    def check_match_mode(cls, v):
        if v not in MATCH_MODES:
            raise ValueError(f"invalid match mode {v!r}, expected one of {', '.join(MATCH_MODES)}")
        return v

    def with_overrides(self, **overrides) -> "GCConfig":
        """Returns a new config; None values leave the field untouched."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        if not changes:
            return self
        return _build({**self.model_dump(), **changes})


def _build(values: dict) -> GCConfig:
    try:
        return GCConfig(**values)
    except ValidationError as e:
        fields = {v: k for k, v in ENV_FIELDS.items()}
        errors = []
        for err in e.errors():
            field = str(err["loc"][0]) if err["loc"] else "?"
            errors.append(f"{fields.get(field, field)}: {err['msg']}")
        raise ConfigError("invalid configuration: " + "; ".join(errors)) from e


def load_config(environ: Optional[Mapping[str, str]] = None) -> GCConfig:
    """Lit la configuration depuis l'environnement."""
    environ = os.environ if environ is None else environ
    values = {}
    for env_key, field in ENV_FIELDS.items():
        raw = environ.get(env_key)
        if raw is None or raw.strip() == "":
            continue
        values[field] = raw.strip()
    return _build(values)
