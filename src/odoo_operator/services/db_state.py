"""Database bootstrap state machine.

absent -> Pending -> Initializing -> Ready | Failed

Ready and Failed are terminal. The functions here only decide; the
reconciler gathers the observations and performs the side effects.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from odoo_operator.models.database import OdooDBStatus, OdooDBStatusCondition


class JobState(Enum):
    COMPLETE = "Complete"
    FAILED = "Failed"
    IN_PROGRESS = "InProgress"


class DbStep(Enum):
    INITIALIZE = "initialize"
    WAIT_FOR_SECRET = "wait-for-secret"
    START_JOB = "start-job"
    WAIT_FOR_JOB = "wait-for-job"
    FINISH = "finish"
    NONE = "none"


@dataclass(frozen=True)
class Transition:
    step: DbStep
    target: Optional[OdooDBStatusCondition] = None

    def apply(self, status: Optional[OdooDBStatus]) -> Optional[OdooDBStatus]:
        """The status to persist, or None when nothing changes."""
        if self.target is None:
            return None
        if status is None:
            return OdooDBStatus.new()
        return status.with_condition(self.target)


def get_job_state(job: Dict[str, Any]) -> JobState:
    for condition in (job.get("status") or {}).get("conditions") or []:
        if condition.get("status") != "True":
            continue
        if condition.get("type") == "Complete":
            return JobState.COMPLETE
        if condition.get("type") == "Failed":
            return JobState.FAILED
    return JobState.IN_PROGRESS


def _pending(secret_exists: bool, job_state: Optional[JobState]) -> Transition:
    if not secret_exists:
        return Transition(DbStep.WAIT_FOR_SECRET)
    return Transition(DbStep.START_JOB, OdooDBStatusCondition.INITIALIZING)


def _initializing(secret_exists: bool, job_state: Optional[JobState]) -> Transition:
    if job_state is JobState.COMPLETE:
        return Transition(DbStep.FINISH, OdooDBStatusCondition.READY)
    if job_state is JobState.FAILED:
        return Transition(DbStep.FINISH, OdooDBStatusCondition.FAILED)
    return Transition(DbStep.WAIT_FOR_JOB)


def _terminal(secret_exists: bool, job_state: Optional[JobState]) -> Transition:
    return Transition(DbStep.NONE)


_TRANSITIONS = {
    OdooDBStatusCondition.PENDING: _pending,
    OdooDBStatusCondition.INITIALIZING: _initializing,
    OdooDBStatusCondition.READY: _terminal,
    OdooDBStatusCondition.FAILED: _terminal,
}


def next_transition(
    status: Optional[OdooDBStatus],
    secret_exists: bool = False,
    job_state: Optional[JobState] = None,
) -> Transition:
    """Decide the single step to take from the current status."""
    if status is None:
        return Transition(DbStep.INITIALIZE, OdooDBStatusCondition.PENDING)
    return _TRANSITIONS[status.condition](secret_exists, job_state)
