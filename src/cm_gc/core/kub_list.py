from kubernetes.client.rest import ApiException
from loguru import logger

from cm_gc.core.inuse import is_owned_by_rollout
from cm_gc.core.models import RolloutInfo

ROLLOUT_GROUP = "argoproj.io"
ROLLOUT_VERSION = "v1alpha1"
ROLLOUT_PLURAL = "rollouts"


class KubeOperationError(Exception):
    """Échec d'un appel à l'API Kubernetes, avec son contexte."""

    def __init__(self, namespace, operation, name=None, cause=None):
        self.namespace = namespace
        self.operation = operation
        self.name = name
        self.cause = cause
        target = f" {name}" if name else ""
        super().__init__(f"{operation}{target} failed in namespace '{namespace}': {cause}")

    @property
    def status(self):
        return getattr(self.cause, "status", None)


def list_rollouts(custom_api, namespace):
    """
    Liste les Rollouts Argo d'un namespace.
    """
    try:
        logger.debug(f"Fetching Rollouts in namespace {namespace}")
        response = custom_api.list_namespaced_custom_object(
            group=ROLLOUT_GROUP,
            version=ROLLOUT_VERSION,
            namespace=namespace,
            plural=ROLLOUT_PLURAL,
        )
    except ApiException as e:
        logger.error(f"Error fetching Rollouts in {namespace}: {e.reason}")
        raise KubeOperationError(namespace, "list rollouts", cause=e) from e

    rollouts = [RolloutInfo.from_api_response(item) for item in response.get("items", [])]
    logger.debug(f"{len(rollouts)} Rollouts found in {namespace}")
    return rollouts


def list_rollout_replicasets(apps_v1, namespace, rollout_name=None):
    """
    Retourne les ReplicaSets du namespace détenus par un Rollout
    (le ReplicaSet actif et l'historique conservé par revisionHistoryLimit).
    """
    try:
        logger.debug(f"Fetching ReplicaSets in namespace {namespace}")
        replicasets = apps_v1.list_namespaced_replica_set(namespace, watch=False)
    except ApiException as e:
        logger.error(f"Error fetching ReplicaSets in {namespace}: {e.reason}")
        raise KubeOperationError(namespace, "list replicasets", cause=e) from e

    owned = [rs for rs in replicasets.items if is_owned_by_rollout(rs, rollout_name)]
    logger.debug(f"{len(owned)}/{len(replicasets.items)} ReplicaSets owned by a Rollout in {namespace}")
    return owned


def list_configmaps(core_v1, namespace, prefix=None):
    """
    Liste les ConfigMaps d'un namespace. Le filtrage par préfixe se fait côté
    client, les field selectors sur le nom n'étant pas fiables partout.
    """
    try:
        logger.debug(f"Fetching ConfigMaps in namespace {namespace}")
        configmaps = core_v1.list_namespaced_config_map(namespace, watch=False)
    except ApiException as e:
        logger.error(f"Error fetching ConfigMaps in {namespace}: {e.reason}")
        raise KubeOperationError(namespace, "list configmaps", cause=e) from e

    if prefix is None:
        return list(configmaps.items)
    return [cm for cm in configmaps.items if cm.metadata.name.startswith(prefix)]


def delete_configmap(core_v1, namespace, name):
    """
    Supprime une ConfigMap. Le dry-run est géré par l'appelant:
    cette fonction supprime toujours.
    """
    try:
        core_v1.delete_namespaced_config_map(name, namespace)
    except ApiException as e:
        raise KubeOperationError(namespace, "delete configmap", name=name, cause=e) from e
