"""Pod scheduling affinity: fragments, defaults and the legacy selector."""

import copy
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from odoo_operator.constants import APP_NAME
from odoo_operator.models.fragments import Fragment
from odoo_operator.models.roles import OdooRole

TOPOLOGY_KEY_HOSTNAME = "kubernetes.io/hostname"

# Preferences keep pods spread without blocking scheduling on small clusters
CLUSTER_AFFINITY_WEIGHT = 20
ROLE_ANTI_AFFINITY_WEIGHT = 70


class AffinityFragment(Fragment):
    """Scheduling constraints; each field is replaced as a whole on merge."""

    podAffinity: Optional[Dict[str, Any]] = Field(
        default=None, description="Kubernetes PodAffinity"
    )
    podAntiAffinity: Optional[Dict[str, Any]] = Field(
        default=None, description="Kubernetes PodAntiAffinity"
    )
    nodeAffinity: Optional[Dict[str, Any]] = Field(
        default=None, description="Kubernetes NodeAffinity"
    )
    nodeSelector: Optional[Dict[str, str]] = Field(
        default=None, description="Node labels pods must match"
    )

    def add_legacy_selector(self, selector: Dict[str, Any]) -> "AffinityFragment":
        """Fold a deprecated role group ``selector`` into the affinity.

        ``matchLabels`` extend the node selector (keys already set win) and
        ``matchExpressions`` become an additional required node selector term.
        """
        match_labels = selector.get("matchLabels") or {}
        match_expressions = selector.get("matchExpressions") or []

        node_selector = self.nodeSelector
        if match_labels:
            node_selector = {**match_labels, **(self.nodeSelector or {})}

        node_affinity = self.nodeAffinity
        if match_expressions:
            node_affinity = copy.deepcopy(self.nodeAffinity or {})
            required = node_affinity.setdefault(
                "requiredDuringSchedulingIgnoredDuringExecution", {}
            )
            required.setdefault("nodeSelectorTerms", []).append(
                {
                    "matchExpressions": [
                        {
                            "key": expr["key"],
                            "operator": expr["operator"],
                            **({"values": expr["values"]} if expr.get("values") else {}),
                        }
                        for expr in match_expressions
                    ]
                }
            )

        return self.model_copy(
            update={"nodeSelector": node_selector, "nodeAffinity": node_affinity}
        )


class Affinity(BaseModel):
    """Effective scheduling constraints."""

    podAffinity: Optional[Dict[str, Any]] = None
    podAntiAffinity: Optional[Dict[str, Any]] = None
    nodeAffinity: Optional[Dict[str, Any]] = None
    nodeSelector: Optional[Dict[str, str]] = None

    def to_pod_affinity(self) -> Optional[Dict[str, Any]]:
        """The ``affinity`` field of a pod spec, or None when unconstrained."""
        affinity = self.model_dump(exclude_none=True, exclude={"nodeSelector"})
        return affinity or None


def _weighted_term(weight: int, labels: Dict[str, str]) -> Dict[str, Any]:
    return {
        "weight": weight,
        "podAffinityTerm": {
            "labelSelector": {"matchLabels": labels},
            "topologyKey": TOPOLOGY_KEY_HOSTNAME,
        },
    }


def affinity_between_cluster_pods(cluster_name: str, weight: int) -> Dict[str, Any]:
    return _weighted_term(
        weight,
        {
            "app.kubernetes.io/name": APP_NAME,
            "app.kubernetes.io/instance": cluster_name,
        },
    )


def affinity_between_role_pods(
    cluster_name: str, role: str, weight: int
) -> Dict[str, Any]:
    return _weighted_term(
        weight,
        {
            "app.kubernetes.io/name": APP_NAME,
            "app.kubernetes.io/instance": cluster_name,
            "app.kubernetes.io/component": role,
        },
    )


def default_affinity(cluster_name: str, role: OdooRole) -> AffinityFragment:
    """Co-locate pods of a cluster, spread replicas of the same role."""
    pod_affinity: List[Dict[str, Any]] = [
        affinity_between_cluster_pods(cluster_name, CLUSTER_AFFINITY_WEIGHT)
    ]
    pod_anti_affinity: List[Dict[str, Any]] = [
        affinity_between_role_pods(
            cluster_name, role.value, ROLE_ANTI_AFFINITY_WEIGHT
        )
    ]
    return AffinityFragment(
        podAffinity={"preferredDuringSchedulingIgnoredDuringExecution": pod_affinity},
        podAntiAffinity={
            "preferredDuringSchedulingIgnoredDuringExecution": pod_anti_affinity
        },
    )
