import os
import sys
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cm_gc.core.inuse import ANNOTATION_CHECKSUM_CONFIG

BASE_TIME = datetime(2026, 2, 13, tzinfo=timezone.utc)
NAMESPACE = "mwpcloud"
ROLLOUT = "xzk0-seat"


def owner(kind, name):
    return SimpleNamespace(api_version="argoproj.io/v1alpha1", kind=kind, name=name, uid=f"{name}-uid")


@pytest.fixture
def base_time():
    return BASE_TIME


@pytest.fixture
def make_rs():
    """Construit un ReplicaSet minimal; checksum=None simule l'absence d'annotation."""

    def _make(name, checksum=None, owner_kind="Rollout", owner_name=ROLLOUT):
        owners = [owner(owner_kind, owner_name)] if owner_kind else None
        annotations = {ANNOTATION_CHECKSUM_CONFIG: checksum} if checksum is not None else None
        return SimpleNamespace(
            metadata=SimpleNamespace(name=name, namespace=NAMESPACE, owner_references=owners),
            spec=SimpleNamespace(template=SimpleNamespace(metadata=SimpleNamespace(annotations=annotations))),
        )

    return _make


@pytest.fixture
def make_cm():
    """Construit une ConfigMap créée il y a `age_days` jours par rapport à BASE_TIME."""

    def _make(name, age_days=0, annotations=None):
        return SimpleNamespace(
            metadata=SimpleNamespace(
                name=name,
                namespace=NAMESPACE,
                creation_timestamp=BASE_TIME - timedelta(days=age_days),
                annotations=annotations,
            )
        )

    return _make
