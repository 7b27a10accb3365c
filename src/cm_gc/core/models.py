from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Argo Rollouts default when spec.revisionHistoryLimit is unset
DEFAULT_REVISION_HISTORY_LIMIT = 10


class Decision(str, Enum):
    DELETE = "delete"
    KEEP_RECENT = "kept by keep-last"
    IN_USE = "in use"
    PROTECTED = "protected annotation"
    PRUNE_LAST = "argocd PruneLast"
    TOO_YOUNG = "younger than keep-days"


class ConfigMapCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    creation_timestamp: datetime
    annotations: Dict[str, str] = Field(default_factory=dict)

    @field_validator("annotations", mode="before")
    @classmethod
    def default_annotations(cls, v):
        return {} if v is None else v

    @field_validator("creation_timestamp")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        # L'API renvoie de l'UTC; un datetime naïf est traité comme tel
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @classmethod
    def from_k8s(cls, cm):
        """🏭 Crée un candidat depuis un V1ConfigMap"""
        return cls(
            name=cm.metadata.name,
            creation_timestamp=cm.metadata.creation_timestamp,
            annotations=cm.metadata.annotations,
        )


class PlanDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    decision: Decision
    age_days: int


class RolloutInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    revision_history_limit: int = DEFAULT_REVISION_HISTORY_LIMIT

    @property
    def configmap_prefix(self) -> str:
        return f"{self.name}-config-"

    @classmethod
    def from_api_response(cls, rollout: dict):
        """🏭 Crée une instance depuis un objet Rollout (CustomObjectsApi)"""
        spec = rollout.get("spec") or {}
        limit = spec.get("revisionHistoryLimit")
        if limit is None:
            limit = DEFAULT_REVISION_HISTORY_LIMIT
        return cls(name=rollout["metadata"]["name"], revision_history_limit=int(limit))


class NamespaceReport(BaseModel):
    namespace: str
    rollouts: List[str] = Field(default_factory=list)
    planned: List[str] = Field(default_factory=list)
    deleted: List[str] = Field(default_factory=list)
    failed_deletions: List[str] = Field(default_factory=list)
    failed: bool = False
    error: Optional[str] = None
