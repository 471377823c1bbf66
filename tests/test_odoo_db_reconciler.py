"""Tests for the OdooDB reconciler."""

import pytest

from odoo_operator.errors import DependencyNotReadyError, ExternalCallError
from odoo_operator.models.database import OdooDB
from odoo_operator.services.db_reconciler import (
    INITIALIZE_REQUEUE_SECONDS,
    DatabaseContext,
    reconcile_odoo_db,
)


def make_db(condition=None, **spec):
    body = {
        "apiVersion": "odoo.stackable.tech/v1alpha1",
        "kind": "OdooDB",
        "metadata": {"name": "odoo", "namespace": "default", "uid": "db-uid"},
        "spec": {
            "image": {"productVersion": "2.6.1", "stackableVersion": "0.0.0-dev"},
            "credentialsSecret": "simple-odoo-credentials",
            **spec,
        },
    }
    if condition is not None:
        body["status"] = {"startedAt": "2024-01-01T00:00:00Z", "condition": condition}
    return OdooDB.from_body(body)


def seed_secret(manager):
    manager.seed(
        {
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": {"name": "simple-odoo-credentials", "namespace": "default"},
        }
    )


def seed_job(manager, condition_type=None):
    job = {
        "apiVersion": "batch/v1",
        "kind": "Job",
        "metadata": {"name": "odoo", "namespace": "default"},
    }
    if condition_type:
        job["status"] = {"conditions": [{"type": condition_type, "status": "True"}]}
    manager.seed(job)


class TestReconcileOdooDb:
    """Each pass advances the bootstrap by at most one step."""

    def test_new_database_becomes_pending(self, manager):
        action = reconcile_odoo_db(make_db(), DatabaseContext(manager))

        assert action.requeue_after == INITIALIZE_REQUEUE_SECONDS
        assert manager.last_status("OdooDB", "odoo")["condition"] == "Pending"
        assert [m["metadata"]["name"] for m in manager.applied] == [
            "odoo-db-serviceaccount",
            "odoo-db-rolebinding",
        ]

    def test_pending_without_secret_waits(self, manager):
        with pytest.raises(DependencyNotReadyError):
            reconcile_odoo_db(make_db("Pending"), DatabaseContext(manager))
        assert manager.applied_of_kind("Job") == []
        assert manager.statuses == []

    def test_pending_with_secret_starts_job(self, manager):
        seed_secret(manager)

        action = reconcile_odoo_db(make_db("Pending"), DatabaseContext(manager))

        assert action.requeue_after is None
        (job,) = manager.applied_of_kind("Job")
        (config_map,) = manager.applied_of_kind("ConfigMap")
        assert job["metadata"]["name"] == "odoo"
        assert job["metadata"]["ownerReferences"][0]["uid"] == "db-uid"
        assert config_map["metadata"]["name"] == "odoo-init-db"
        assert "log_config.py" in config_map["data"]

        pod = job["spec"]["template"]["spec"]
        assert pod["restartPolicy"] == "Never"
        assert pod["serviceAccountName"] == "odoo-db-serviceaccount"
        (container,) = pod["containers"]
        assert container["name"] == "odoo-init-db"
        assert "odoo db init" in container["args"][0]
        env_names = [e["name"] for e in container["env"]]
        assert "ODOO__CORE__SQL_ALCHEMY_CONN" in env_names
        assert "ADMIN_PASSWORD" in env_names

        status = manager.last_status("OdooDB", "odoo")
        assert status["condition"] == "Initializing"
        assert status["startedAt"].startswith("2024-01-01")

    def test_vector_agent_requires_aggregator(self, manager):
        seed_secret(manager)
        manager.seed(
            {
                "apiVersion": "v1",
                "kind": "ConfigMap",
                "metadata": {"name": "vector-aggregator-discovery", "namespace": "default"},
                "data": {"ADDRESS": "vector-aggregator:6000"},
            }
        )
        odoo_db = make_db(
            "Pending",
            vectorAggregatorConfigMapName="vector-aggregator-discovery",
            config={"logging": {"enableVectorAgent": True}},
        )

        reconcile_odoo_db(odoo_db, DatabaseContext(manager))

        (job,) = manager.applied_of_kind("Job")
        containers = job["spec"]["template"]["spec"]["containers"]
        assert [c["name"] for c in containers] == ["odoo-init-db", "vector"]
        assert "shutdown" in containers[0]["args"][0]
        (config_map,) = manager.applied_of_kind("ConfigMap")
        assert "vector-aggregator:6000" in config_map["data"]["vector.yaml"]

    def test_initializing_job_complete_is_ready(self, manager):
        seed_job(manager, "Complete")
        reconcile_odoo_db(make_db("Initializing"), DatabaseContext(manager))
        assert manager.last_status("OdooDB", "odoo")["condition"] == "Ready"

    def test_initializing_job_failed_is_failed(self, manager):
        seed_job(manager, "Failed")
        reconcile_odoo_db(make_db("Initializing"), DatabaseContext(manager))
        assert manager.last_status("OdooDB", "odoo")["condition"] == "Failed"

    def test_initializing_job_running_keeps_status(self, manager):
        seed_job(manager)
        reconcile_odoo_db(make_db("Initializing"), DatabaseContext(manager))
        assert manager.statuses == []

    def test_initializing_without_job_is_an_error(self, manager):
        with pytest.raises(ExternalCallError):
            reconcile_odoo_db(make_db("Initializing"), DatabaseContext(manager))

    def test_ready_is_terminal(self, manager):
        seed_secret(manager)
        reconcile_odoo_db(make_db("Ready"), DatabaseContext(manager))
        assert manager.applied_of_kind("Job") == []
        assert manager.statuses == []


class TestOdooDbFromBody:
    def test_status_without_condition_is_absent(self):
        odoo_db = OdooDB.from_body(
            {
                "apiVersion": "odoo.stackable.tech/v1alpha1",
                "kind": "OdooDB",
                "metadata": {"name": "odoo", "namespace": "default"},
                "spec": {
                    "image": {"productVersion": "2.6.1"},
                    "credentialsSecret": "creds",
                },
                "status": {"kopf": {"progress": {}}},
            }
        )
        assert odoo_db.status is None
