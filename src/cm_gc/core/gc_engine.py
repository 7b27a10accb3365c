import asyncio
from datetime import datetime, timezone
from typing import Callable, List, Optional, Set

from loguru import logger

from cm_gc.core.inuse import MATCH_SUBSTRING, InUseResolver, filter_configmaps_by_checksums
from cm_gc.core.kub_list import (
    KubeOperationError,
    delete_configmap,
    list_configmaps,
    list_rollout_replicasets,
    list_rollouts,
)
from cm_gc.core.models import ConfigMapCandidate, Decision, NamespaceReport, RolloutInfo
from cm_gc.core.planner import explain

# ReplicaSet actif + revisionHistoryLimit + une marge
ROLLOUT_KEEP_MARGIN = 2


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GarbageCollector:
    """
    Moteur de garbage collection des ConfigMaps versionnées.

    Un cycle par namespace, exécutés en parallèle; dans un namespace les
    groupes de ConfigMaps (un par Rollout) sont traités à la suite.

    Attributes:
        clients: KubeClients (apps_v1, core_v1, custom_objects)
        keep_last: nombre de ConfigMaps les plus récentes toujours conservées
        keep_days: âge minimum en jours avant suppression
        dry_run: si vrai, rien n'est supprimé
        keep_last_from_rollout: keep_last = revisionHistoryLimit + 2 par Rollout
        match_mode: "substring" ou "suffix" pour relier checksum et nom
        clock: callable renvoyant l'heure courante (UTC)
    """

    def __init__(
        self,
        clients,
        keep_last: int,
        keep_days: int,
        dry_run: bool = True,
        keep_last_from_rollout: bool = False,
        match_mode: str = MATCH_SUBSTRING,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.clients = clients
        self.keep_last = keep_last
        self.keep_days = keep_days
        self.dry_run = dry_run
        self.keep_last_from_rollout = keep_last_from_rollout
        self.match_mode = match_mode
        self.clock = clock or utcnow
        self.resolver = InUseResolver(lambda ns: list_rollout_replicasets(clients.apps_v1, ns))

    @classmethod
    def from_config(cls, clients, cfg, clock=None):
        return cls(
            clients,
            keep_last=cfg.keep_last,
            keep_days=cfg.keep_days,
            dry_run=cfg.dry_run,
            keep_last_from_rollout=cfg.keep_last_from_rollout,
            match_mode=cfg.match_mode,
            clock=clock,
        )

    async def run(self, namespaces: List[str]) -> List[NamespaceReport]:
        """
        Lance un cycle par namespace et attend qu'ils soient tous terminés.
        Un échec dans un namespace n'interrompt pas les autres.
        """
        tasks = [asyncio.to_thread(self._run_namespace_safely, ns) for ns in namespaces]
        reports = await asyncio.gather(*tasks)

        failed = [r.namespace for r in reports if r.failed]
        if failed:
            logger.error(f"GC finished with failures in namespaces: {', '.join(failed)}")
        else:
            logger.success(f"GC finished for {len(reports)} namespace(s)")
        return list(reports)

    def _run_namespace_safely(self, namespace: str) -> NamespaceReport:
        try:
            return self.run_namespace(namespace)
        except Exception as e:
            logger.bind(namespace=namespace).exception(f"Unexpected error during GC cycle: {e}")
            return NamespaceReport(namespace=namespace, failed=True, error=str(e))

    def run_namespace(self, namespace: str) -> NamespaceReport:
        """
        Cycle complet pour un namespace:
          1. liste des Rollouts (préfixe "<rollout>-config-" dérivé de chacun)
          2. checksums utilisés, résolus une seule fois pour tout le namespace
          3. plan + suppression par Rollout
        """
        log = logger.bind(namespace=namespace)
        report = NamespaceReport(namespace=namespace)

        try:
            rollouts = list_rollouts(self.clients.custom_objects, namespace)
        except KubeOperationError as e:
            log.error(f"Failed to list rollouts: {e}")
            report.failed, report.error = True, str(e)
            return report

        report.rollouts = [r.name for r in rollouts]
        log.info(f"Discovered {len(rollouts)} rollout(s): {', '.join(report.rollouts)}")
        if not rollouts:
            log.info("No rollouts found in namespace, nothing to do")
            return report

        try:
            checksums = self.resolver.resolve(namespace)
        except KubeOperationError as e:
            log.error(f"Failed to resolve in-use checksums: {e}")
            report.failed, report.error = True, str(e)
            return report
        log.info(f"Resolved {len(checksums)} in-use checksum(s): {', '.join(sorted(checksums))}")

        for rollout in rollouts:
            self.run_rollout(namespace, rollout, checksums, report)

        return report

    def keep_last_for(self, rollout: RolloutInfo) -> int:
        if self.keep_last_from_rollout:
            return rollout.revision_history_limit + ROLLOUT_KEEP_MARGIN
        return self.keep_last

    def run_rollout(self, namespace: str, rollout: RolloutInfo, checksums: Set[str], report: NamespaceReport):
        """Plans and executes the deletions of one Rollout's ConfigMap group."""
        prefix = rollout.configmap_prefix
        log = logger.bind(namespace=namespace, rollout=rollout.name, prefix=prefix)

        try:
            configmaps = list_configmaps(self.clients.core_v1, namespace, prefix)
        except KubeOperationError as e:
            log.error(f"Failed to list configmaps: {e}")
            report.failed, report.error = True, str(e)
            return
        log.info(f"Discovered {len(configmaps)} configmap(s) matching prefix")

        if not configmaps:
            log.info("No configmaps found matching prefix, nothing to do")
            return

        in_use = {cm.metadata.name for cm in filter_configmaps_by_checksums(configmaps, checksums, self.match_mode)}
        log.debug(f"In-use configmaps: {', '.join(sorted(in_use))}")

        candidates = [ConfigMapCandidate.from_k8s(cm) for cm in configmaps]
        keep_last = self.keep_last_for(rollout)
        decisions = explain(
            candidates,
            in_use,
            keep_last,
            self.keep_days,
            self.clock(),
            match_substring=self.match_mode == MATCH_SUBSTRING,
        )

        to_delete = []
        for d in decisions:
            if d.decision is Decision.DELETE:
                to_delete.append(d)
            else:
                log.debug(f"Keeping {d.name} ({d.decision.value}, {d.age_days}d old)")

        log.info(f"Planner result: {len(to_delete)} candidate(s) for deletion (keep_last={keep_last}, keep_days={self.keep_days})")
        if not to_delete:
            log.info("No configmaps eligible for deletion, done")
            return

        report.planned.extend(d.name for d in to_delete)

        if self.dry_run:
            for d in to_delete:
                log.info(f"[DRY-RUN] would delete configmap {d.name} ({d.age_days}d old, not in-use, outside keep-last, older than keep-days)")
            log.info(f"[DRY-RUN] completed, no deletions performed ({len(to_delete)} would be deleted)")
            return

        deleted = 0
        for d in to_delete:
            log.info(f"Deleting configmap {d.name} ({d.age_days}d old)")
            try:
                delete_configmap(self.clients.core_v1, namespace, d.name)
            except KubeOperationError as e:
                log.error(f"Failed to delete configmap {d.name}: {e}")
                report.failed_deletions.append(d.name)
                report.failed = True
                continue
            report.deleted.append(d.name)
            deleted += 1

        log.info(f"GC completed: {deleted} deleted, {len(to_delete) - deleted} failed")
