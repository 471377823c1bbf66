"""Status conditions of an OdooCluster."""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from odoo_operator.crd.base import CRDCondition
from odoo_operator.models.cluster import ClusterOperation
from odoo_operator.models.database import OdooDBStatus, OdooDBStatusCondition

AVAILABLE = "Available"
DEGRADED = "Degraded"
RECONCILIATION_PAUSED = "ReconciliationPaused"
STOPPED = "Stopped"

TRUE, FALSE, UNKNOWN = "True", "False", "Unknown"

# Which status is the bad one per type; the worst report across builders wins
_BAD_STATUS = {
    AVAILABLE: FALSE,
    DEGRADED: TRUE,
    RECONCILIATION_PAUSED: TRUE,
    STOPPED: TRUE,
}


def _severity(condition_type: str, status: str) -> int:
    if status == _BAD_STATUS.get(condition_type, FALSE):
        return 2
    return 1 if status == UNKNOWN else 0


def _condition(type_: str, status: str, reason: str, message: str) -> CRDCondition:
    return CRDCondition(type=type_, status=status, reason=reason, message=message)


class StatefulSetConditionBuilder:
    def __init__(self):
        self.stateful_sets: List[Dict[str, Any]] = []

    def add(self, stateful_set: Dict[str, Any]) -> None:
        self.stateful_sets.append(stateful_set)

    @staticmethod
    def _available(stateful_set: Dict[str, Any]) -> bool:
        requested = (stateful_set.get("spec") or {}).get("replicas") or 0
        available = (stateful_set.get("status") or {}).get("availableReplicas") or 0
        return requested == available

    def build_conditions(self) -> List[CRDCondition]:
        unavailable = sorted(
            sts["metadata"]["name"]
            for sts in self.stateful_sets
            if not self._available(sts)
        )
        if unavailable:
            return [
                _condition(
                    AVAILABLE,
                    FALSE,
                    "StatefulSetsUnavailable",
                    f"StatefulSets not available: {', '.join(unavailable)}",
                )
            ]
        return [
            _condition(AVAILABLE, TRUE, "AllReplicasAvailable", "The cluster is available")
        ]


class ClusterOperationsConditionBuilder:
    def __init__(self, operation: ClusterOperation):
        self.operation = operation

    def build_conditions(self) -> List[CRDCondition]:
        paused = self.operation.reconciliationPaused
        stopped = self.operation.stopped
        return [
            _condition(
                RECONCILIATION_PAUSED,
                TRUE if paused else FALSE,
                "ReconciliationPaused" if paused else "ReconciliationActive",
                "Reconciliation is paused" if paused else "Reconciliation is active",
            ),
            _condition(
                STOPPED,
                TRUE if stopped else FALSE,
                "Stopped" if stopped else "Running",
                "The cluster is stopped" if stopped else "The cluster is running",
            ),
        ]


_DB_CONDITIONS = {
    None: (UNKNOWN, "Waiting for Odoo database initialization to start."),
    OdooDBStatusCondition.PENDING: (
        FALSE,
        "Waiting for OdooDB initialization to complete",
    ),
    OdooDBStatusCondition.INITIALIZING: (
        FALSE,
        "Waiting for OdooDB initialization to complete",
    ),
    OdooDBStatusCondition.FAILED: (FALSE, "Odoo database initialization failed."),
    OdooDBStatusCondition.READY: (TRUE, "Odoo database initialization ready."),
}


class DbConditionBuilder:
    """Availability as far as the database bootstrap is concerned."""

    def __init__(self, status: Optional[OdooDBStatus]):
        self.status = status

    @property
    def db_condition(self) -> Optional[OdooDBStatusCondition]:
        return self.status.condition if self.status else None

    @property
    def must_wait(self) -> bool:
        """Role resources may only be built once the database is ready."""
        return self.db_condition is not OdooDBStatusCondition.READY

    def build_conditions(self) -> List[CRDCondition]:
        status, message = _DB_CONDITIONS[self.db_condition]
        reason = f"Database{self.db_condition.value}" if self.db_condition else "DatabaseAbsent"
        return [_condition(AVAILABLE, status, reason, message)]


class RoleGroupFailureConditionBuilder:
    def __init__(self, failures: Iterable[Exception]):
        self.failures = list(failures)

    def build_conditions(self) -> List[CRDCondition]:
        if self.failures:
            message = "; ".join(str(f) for f in self.failures)
            return [_condition(DEGRADED, TRUE, "RoleGroupConfigInvalid", message)]
        return [_condition(DEGRADED, FALSE, "Reconciled", "All role groups reconciled")]


def compute_conditions(
    previous: Iterable[CRDCondition], builders: Iterable[Any]
) -> List[CRDCondition]:
    """Merge conditions of all builders, keeping transition times stable."""
    now = datetime.now(timezone.utc)
    merged: Dict[str, CRDCondition] = {}
    for builder in builders:
        for condition in builder.build_conditions():
            current = merged.get(condition.type)
            if current is None or _severity(condition.type, condition.status) > _severity(
                current.type, current.status
            ):
                merged[condition.type] = condition

    old = {c.type: c for c in previous}
    result = []
    for condition_type in sorted(merged):
        condition = merged[condition_type]
        before = old.get(condition_type)
        if before is not None and before.status == condition.status:
            transition = before.lastTransitionTime or now
        else:
            transition = now
        result.append(
            condition.model_copy(
                update={"lastTransitionTime": transition, "lastUpdateTime": now}
            )
        )
    return result
