"""Tracks the objects applied for one cluster and removes stale ones."""

import copy
import logging
from enum import Enum
from typing import Any, Dict, Set

from odoo_operator.crd.base import CustomResource
from odoo_operator.errors import ExternalCallError, InvalidConfigError
from odoo_operator.models.cluster import ClusterOperation
from odoo_operator.services.metadata import required_labels
from odoo_operator.services.resource_manager import ObjectKey, object_key

logger = logging.getLogger(__name__)

# Kinds created per cluster; anything labelled for the cluster but not applied
# in the current pass is deleted
ORPHAN_CANDIDATE_KINDS = (
    ("v1", "Service"),
    ("v1", "ConfigMap"),
    ("v1", "ServiceAccount"),
    ("apps/v1", "StatefulSet"),
    ("rbac.authorization.k8s.io/v1", "RoleBinding"),
)


class ClusterResourceApplyStrategy(Enum):
    DEFAULT = "default"
    RECONCILIATION_PAUSED = "reconciliation-paused"
    CLUSTER_STOPPED = "cluster-stopped"

    @classmethod
    def from_cluster_operation(
        cls, operation: ClusterOperation
    ) -> "ClusterResourceApplyStrategy":
        if operation.reconciliationPaused:
            return cls.RECONCILIATION_PAUSED
        if operation.stopped:
            return cls.CLUSTER_STOPPED
        return cls.DEFAULT


class ClusterResources:
    def __init__(
        self,
        controller_name: str,
        owner: CustomResource,
        apply_strategy: ClusterResourceApplyStrategy = ClusterResourceApplyStrategy.DEFAULT,
    ):
        self.owner = owner
        self.namespace = owner.require_namespace()
        self.apply_strategy = apply_strategy
        self.required_labels = required_labels(owner.name, controller_name)
        self.resource_ids: Set[ObjectKey] = set()

    def add(self, manager, manifest: Dict[str, Any], what: str = "") -> Dict[str, Any]:
        """Apply ``manifest`` according to the strategy and remember it."""
        labels = manifest.get("metadata", {}).get("labels") or {}
        missing = {k: v for k, v in self.required_labels.items() if labels.get(k) != v}
        if missing:
            raise InvalidConfigError(
                f"{manifest['kind']} lacks required labels {sorted(missing)}",
                owner=str(self.owner),
            )

        key = object_key(manifest)
        self.resource_ids.add(key)
        try:
            if self.apply_strategy is ClusterResourceApplyStrategy.RECONCILIATION_PAUSED:
                existing = manager.get_opt(manifest["apiVersion"], key[0], key[2], key[1])
                return existing if existing is not None else manifest
            if (
                self.apply_strategy is ClusterResourceApplyStrategy.CLUSTER_STOPPED
                and key[0] == "StatefulSet"
            ):
                manifest = copy.deepcopy(manifest)
                manifest["spec"]["replicas"] = 0
            return manager.apply(manifest)
        except ExternalCallError as e:
            raise ExternalCallError(
                f"failed to apply {what or key[0]}", owner=str(self.owner)
            ) from e

    def delete_orphaned_resources(self, manager) -> None:
        if self.apply_strategy is ClusterResourceApplyStrategy.RECONCILIATION_PAUSED:
            logger.info(f"Reconciliation of {self.owner} is paused, keeping orphans")
            return
        deleted = manager.delete_orphans(
            self.resource_ids,
            ORPHAN_CANDIDATE_KINDS,
            self.namespace,
            self.required_labels,
            owner_uid=self.owner.metadata.uid,
        )
        for kind, namespace, name in deleted:
            logger.info(f"Deleted orphaned {kind} {namespace}/{name} of {self.owner}")
