from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from kubernetes.client.rest import ApiException

from cm_gc.core.kub_list import (
    KubeOperationError,
    delete_configmap,
    list_configmaps,
    list_rollout_replicasets,
    list_rollouts,
)
from cm_gc.core.models import DEFAULT_REVISION_HISTORY_LIMIT


@pytest.fixture
def mock_custom_api():
    api = MagicMock()
    api.list_namespaced_custom_object.return_value = {
        "items": [
            {"metadata": {"name": "xzk0-seat"}, "spec": {"revisionHistoryLimit": 3}},
            {"metadata": {"name": "other-app"}, "spec": {}},
        ]
    }
    return api


def test_list_rollouts(mock_custom_api):
    rollouts = list_rollouts(mock_custom_api, "mwpcloud")

    assert [r.name for r in rollouts] == ["xzk0-seat", "other-app"]
    assert rollouts[0].revision_history_limit == 3
    assert rollouts[1].revision_history_limit == DEFAULT_REVISION_HISTORY_LIMIT
    assert rollouts[0].configmap_prefix == "xzk0-seat-config-"
    mock_custom_api.list_namespaced_custom_object.assert_called_once_with(
        group="argoproj.io", version="v1alpha1", namespace="mwpcloud", plural="rollouts"
    )


def test_list_rollouts_empty():
    api = MagicMock()
    api.list_namespaced_custom_object.return_value = {"items": []}
    assert list_rollouts(api, "mwpcloud") == []


def test_list_rollouts_api_error():
    api = MagicMock()
    api.list_namespaced_custom_object.side_effect = ApiException(status=403, reason="Forbidden")

    with pytest.raises(KubeOperationError) as exc_info:
        list_rollouts(api, "mwpcloud")

    assert exc_info.value.namespace == "mwpcloud"
    assert exc_info.value.operation == "list rollouts"
    assert exc_info.value.status == 403


def test_list_rollout_replicasets(make_rs):
    apps_v1 = MagicMock()
    apps_v1.list_namespaced_replica_set.return_value = SimpleNamespace(
        items=[
            make_rs("xzk0-seat-65df947c4c", "e6120fae"),
            make_rs("other-app-abc123", "aabbccdd", owner_name="other-app"),
            make_rs("standalone-rs", "e6120fae", owner_kind=None),
            make_rs("web-5d8f", "cafecafe", owner_kind="Deployment", owner_name="web"),
        ]
    )

    owned = list_rollout_replicasets(apps_v1, "mwpcloud")

    assert [rs.metadata.name for rs in owned] == ["xzk0-seat-65df947c4c", "other-app-abc123"]
    apps_v1.list_namespaced_replica_set.assert_called_once_with("mwpcloud", watch=False)


def test_list_rollout_replicasets_by_name(make_rs):
    apps_v1 = MagicMock()
    apps_v1.list_namespaced_replica_set.return_value = SimpleNamespace(
        items=[
            make_rs("xzk0-seat-65df947c4c", "e6120fae"),
            make_rs("other-app-abc123", "aabbccdd", owner_name="other-app"),
        ]
    )

    owned = list_rollout_replicasets(apps_v1, "mwpcloud", "other-app")

    assert [rs.metadata.name for rs in owned] == ["other-app-abc123"]


def test_list_rollout_replicasets_api_error():
    apps_v1 = MagicMock()
    apps_v1.list_namespaced_replica_set.side_effect = ApiException(status=500, reason="Internal Server Error")

    with pytest.raises(KubeOperationError) as exc_info:
        list_rollout_replicasets(apps_v1, "mwpcloud")

    assert exc_info.value.operation == "list replicasets"
    assert "mwpcloud" in str(exc_info.value)


def test_list_configmaps_prefix(make_cm):
    core_v1 = MagicMock()
    core_v1.list_namespaced_config_map.return_value = SimpleNamespace(
        items=[
            make_cm("xzk0-seat-config-e6120fae"),
            make_cm("xzk0-seat-config-da8762a8"),
            make_cm("other-svc-config-e6120fae"),
            make_cm("kube-root-ca.crt"),
        ]
    )

    matched = list_configmaps(core_v1, "mwpcloud", "xzk0-seat-config-")

    assert [cm.metadata.name for cm in matched] == ["xzk0-seat-config-e6120fae", "xzk0-seat-config-da8762a8"]


def test_list_configmaps_no_prefix(make_cm):
    core_v1 = MagicMock()
    core_v1.list_namespaced_config_map.return_value = SimpleNamespace(
        items=[make_cm("xzk0-seat-config-e6120fae"), make_cm("kube-root-ca.crt")]
    )

    assert len(list_configmaps(core_v1, "mwpcloud")) == 2


def test_list_configmaps_api_error():
    core_v1 = MagicMock()
    core_v1.list_namespaced_config_map.side_effect = ApiException(status=401, reason="Unauthorized")

    with pytest.raises(KubeOperationError) as exc_info:
        list_configmaps(core_v1, "mwpcloud", "xzk0-seat-config-")

    assert exc_info.value.operation == "list configmaps"


def test_delete_configmap():
    core_v1 = MagicMock()

    delete_configmap(core_v1, "mwpcloud", "xzk0-seat-config-da8762a8")

    core_v1.delete_namespaced_config_map.assert_called_once_with("xzk0-seat-config-da8762a8", "mwpcloud")


def test_delete_configmap_not_found():
    core_v1 = MagicMock()
    core_v1.delete_namespaced_config_map.side_effect = ApiException(status=404, reason="Not Found")

    with pytest.raises(KubeOperationError) as exc_info:
        delete_configmap(core_v1, "mwpcloud", "missing")

    assert exc_info.value.name == "missing"
    assert exc_info.value.status == 404
    assert "delete configmap missing" in str(exc_info.value)
