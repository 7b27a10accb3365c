"""
Résolution des checksums de ConfigMap encore référencés.

Helm écrit l'annotation ``checksum/config`` dans le pod template; chaque
ReplicaSet d'un Rollout (actif ou historique) garde donc la trace de la
version de ConfigMap qu'il monte.
"""
from typing import Iterable, Optional, Set

from loguru import logger

ANNOTATION_CHECKSUM_CONFIG = "checksum/config"
ROLLOUT_KIND = "Rollout"

MATCH_SUBSTRING = "substring"
MATCH_SUFFIX = "suffix"
MATCH_MODES = (MATCH_SUBSTRING, MATCH_SUFFIX)


def is_owned_by_rollout(rs, rollout_name: Optional[str] = None) -> bool:
    """
    Vérifie si un ReplicaSet a un ownerReference de kind Rollout.
    Si rollout_name est fourni, le nom doit aussi correspondre.
    """
    for owner in rs.metadata.owner_references or []:
        if owner.kind != ROLLOUT_KIND:
            continue
        if rollout_name is None or owner.name == rollout_name:
            return True
    return False


def extract_checksum(rs) -> Optional[str]:
    """Returns the checksum/config annotation of the pod template, or None."""
    template = rs.spec.template if rs.spec else None
    if template is None or template.metadata is None:
        return None
    annotations = template.metadata.annotations or {}
    checksum = annotations.get(ANNOTATION_CHECKSUM_CONFIG)
    return checksum or None


def resolve_checksums(replicasets: Iterable) -> Set[str]:
    """
    Collects the deduplicated checksum set of every Rollout-owned ReplicaSet.
    ReplicaSets without the annotation are skipped.
    """
    checksums = set()
    for rs in replicasets:
        if not is_owned_by_rollout(rs):
            continue
        checksum = extract_checksum(rs)
        if checksum is None:
            logger.trace(f"ReplicaSet {rs.metadata.name} has no {ANNOTATION_CHECKSUM_CONFIG} annotation")
            continue
        checksums.add(checksum)
    return checksums


def matches_checksum(name: str, checksum: str, mode: str = MATCH_SUBSTRING) -> bool:
    if not checksum:
        return False
    if mode == MATCH_SUFFIX:
        return name.rsplit("-", 1)[-1] == checksum
    return checksum in name


def filter_configmaps_by_checksums(configmaps, checksums: Set[str], mode: str = MATCH_SUBSTRING):
    """Keeps the ConfigMaps whose name carries one of the checksums."""
    if not checksums:
        return []
    return [
        cm for cm in configmaps
        if any(matches_checksum(cm.metadata.name, c, mode) for c in checksums)
    ]


class InUseResolver:
    """
    Relie la source de ReplicaSets au calcul pur des checksums.

    Attributes:
        lister: callable (namespace) -> liste de ReplicaSets détenus par un Rollout
    """

    def __init__(self, lister):
        self.lister = lister

    def resolve(self, namespace: str) -> Set[str]:
        replicasets = self.lister(namespace)
        checksums = resolve_checksums(replicasets)
        logger.debug(f"{len(checksums)} checksums resolved from {len(replicasets)} ReplicaSets in {namespace}")
        return checksums
