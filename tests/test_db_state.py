"""Tests for the database bootstrap state machine."""

import pytest

from odoo_operator.models.database import OdooDBStatus, OdooDBStatusCondition
from odoo_operator.services.db_state import (
    DbStep,
    JobState,
    get_job_state,
    next_transition,
)


def status(condition):
    return OdooDBStatus.new().with_condition(condition)


class TestNextTransition:
    def test_absent_initializes_pending(self):
        transition = next_transition(None)
        assert transition.step is DbStep.INITIALIZE
        new_status = transition.apply(None)
        assert new_status.condition is OdooDBStatusCondition.PENDING
        assert new_status.startedAt is not None

    def test_pending_waits_for_secret(self):
        transition = next_transition(status(OdooDBStatusCondition.PENDING), secret_exists=False)
        assert transition.step is DbStep.WAIT_FOR_SECRET
        assert transition.apply(status(OdooDBStatusCondition.PENDING)) is None

    def test_pending_starts_job_when_secret_exists(self):
        current = status(OdooDBStatusCondition.PENDING)
        transition = next_transition(current, secret_exists=True)
        assert transition.step is DbStep.START_JOB
        new_status = transition.apply(current)
        assert new_status.condition is OdooDBStatusCondition.INITIALIZING
        assert new_status.startedAt == current.startedAt

    @pytest.mark.parametrize(
        "job_state, step, target",
        [
            (JobState.COMPLETE, DbStep.FINISH, OdooDBStatusCondition.READY),
            (JobState.FAILED, DbStep.FINISH, OdooDBStatusCondition.FAILED),
            (JobState.IN_PROGRESS, DbStep.WAIT_FOR_JOB, None),
        ],
    )
    def test_initializing_follows_job(self, job_state, step, target):
        transition = next_transition(
            status(OdooDBStatusCondition.INITIALIZING), job_state=job_state
        )
        assert transition.step is step
        assert transition.target is target

    @pytest.mark.parametrize(
        "condition", [OdooDBStatusCondition.READY, OdooDBStatusCondition.FAILED]
    )
    def test_terminal_states_stay(self, condition):
        transition = next_transition(status(condition), secret_exists=True, job_state=JobState.COMPLETE)
        assert transition.step is DbStep.NONE
        assert transition.apply(status(condition)) is None

    def test_every_condition_is_handled(self):
        for condition in OdooDBStatusCondition:
            for secret_exists in (True, False):
                for job_state in list(JobState) + [None]:
                    next_transition(status(condition), secret_exists, job_state)


class TestGetJobState:
    def test_complete(self):
        job = {"status": {"conditions": [{"type": "Complete", "status": "True"}]}}
        assert get_job_state(job) is JobState.COMPLETE

    def test_failed(self):
        job = {"status": {"conditions": [{"type": "Failed", "status": "True"}]}}
        assert get_job_state(job) is JobState.FAILED

    def test_false_conditions_are_ignored(self):
        job = {"status": {"conditions": [{"type": "Failed", "status": "False"}]}}
        assert get_job_state(job) is JobState.IN_PROGRESS

    def test_no_status(self):
        assert get_job_state({}) is JobState.IN_PROGRESS
