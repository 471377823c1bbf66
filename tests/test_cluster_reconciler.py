"""Tests for the OdooCluster reconciler."""

import logging

import pytest

from odoo_operator.errors import RoleGroupConfigError
from odoo_operator.models.cluster import OdooCluster
from odoo_operator.services.cluster_reconciler import ClusterContext, reconcile_odoo

CLUSTER_UID = "12345678-aaaa-bbbb-cccc-1234567890ab"


def seed_db(manager, condition):
    manager.seed(
        {
            "apiVersion": "odoo.stackable.tech/v1alpha1",
            "kind": "OdooDB",
            "metadata": {"name": "odoo", "namespace": "default"},
            "spec": {
                "image": {"productVersion": "2.6.1"},
                "credentialsSecret": "simple-odoo-credentials",
            },
            "status": {"startedAt": "2024-01-01T00:00:00Z", "condition": condition},
        }
    )


def seed_sts_status(manager, name, available):
    manager.seed(
        {
            "apiVersion": "apps/v1",
            "kind": "StatefulSet",
            "metadata": {"name": name, "namespace": "default"},
            "status": {"availableReplicas": available},
        }
    )


def seed_orphan(manager, name="odoo-worker-old"):
    manager.seed(
        {
            "apiVersion": "apps/v1",
            "kind": "StatefulSet",
            "metadata": {
                "name": name,
                "namespace": "default",
                "labels": {
                    "app.kubernetes.io/name": "odoo",
                    "app.kubernetes.io/instance": "odoo",
                    "app.kubernetes.io/managed-by": "odoo.stackable.tech_odoocluster",
                },
                "ownerReferences": [{"kind": "OdooCluster", "name": "odoo", "uid": CLUSTER_UID}],
            },
        }
    )


def conditions(manager):
    status = manager.last_status("OdooCluster", "odoo")
    return {c["type"]: c for c in status["conditions"]}


def reconcile(cluster, manager, product_config):
    return reconcile_odoo(cluster, ClusterContext(manager, product_config))


class TestDatabaseGate:
    """Role resources are only built once the database is Ready."""

    def test_absent_database_is_created_and_waited_for(self, make_cluster, manager, product_config):
        reconcile(make_cluster(), manager, product_config)

        assert [m["kind"] for m in manager.applied] == ["OdooDB"]
        db = manager.applied[0]
        assert db["metadata"]["name"] == "odoo"
        assert db["spec"]["credentialsSecret"] == "simple-odoo-credentials"
        assert "ownerReferences" not in db["metadata"]

        available = conditions(manager)["Available"]
        assert available["status"] == "Unknown"
        assert available["message"] == "Waiting for Odoo database initialization to start."

    @pytest.mark.parametrize(
        "condition, status, message",
        [
            ("Pending", "False", "Waiting for OdooDB initialization to complete"),
            ("Initializing", "False", "Waiting for OdooDB initialization to complete"),
            ("Failed", "False", "Odoo database initialization failed."),
        ],
    )
    def test_not_ready_database_blocks_roles(
        self, make_cluster, manager, product_config, condition, status, message
    ):
        seed_db(manager, condition)

        reconcile(make_cluster(), manager, product_config)

        assert manager.applied_of_kind("StatefulSet") == []
        available = conditions(manager)["Available"]
        assert available["status"] == status
        assert available["message"] == message
        assert available["reason"] == f"Database{condition}"


class TestReconcileOdoo:
    def test_single_webserver_role_group(self, make_cluster, manager, product_config):
        seed_db(manager, "Ready")
        seed_sts_status(manager, "odoo-webserver-default", 1)

        reconcile(make_cluster(), manager, product_config)

        services = manager.applied_of_kind("Service")
        assert sorted(s["metadata"]["name"] for s in services) == [
            "odoo-webserver",
            "odoo-webserver-default",
        ]
        (config_map,) = manager.applied_of_kind("ConfigMap")
        assert config_map["metadata"]["name"] == "odoo-webserver-default"
        assert "AUTH_TYPE = AUTH_DB" in config_map["data"]["webserver_config.py"]
        assert 'SESSION_COOKIE_SAMESITE = "Lax"' in config_map["data"]["webserver_config.py"]
        (sts,) = manager.applied_of_kind("StatefulSet")
        assert sts["spec"]["replicas"] == 1
        assert sts["spec"]["serviceName"] == "odoo-webserver-default"

        available = conditions(manager)["Available"]
        assert available["status"] == "True"
        assert conditions(manager)["Degraded"]["status"] == "False"

    def test_statefulset_shape(self, make_cluster, manager, product_config):
        seed_db(manager, "Ready")

        reconcile(make_cluster(), manager, product_config)

        (sts,) = manager.applied_of_kind("StatefulSet")
        pod = sts["spec"]["template"]["spec"]
        main = pod["containers"][0]
        assert main["name"] == "odoo"
        assert main["command"] == ["/bin/bash"]
        assert main["args"][1].endswith("odoo webserver")
        assert main["resources"]["limits"] == {"cpu": "400m", "memory": "2Gi"}
        assert main["readinessProbe"]["tcpSocket"]["port"] == 8080
        env = {e["name"]: e for e in main["env"]}
        assert env["ODOO__CORE__LOAD_EXAMPLES"]["value"] == "True"
        assert env["ODOO__CORE__SQL_ALCHEMY_CONN"]["valueFrom"]["secretKeyRef"] == {
            "name": "simple-odoo-credentials",
            "key": "connections.sqlalchemyDatabaseUri",
        }
        assert [c["name"] for c in pod["containers"]] == ["odoo", "metrics"]
        assert pod["serviceAccountName"] == "odoo-serviceaccount"
        assert pod["securityContext"] == {"fsGroup": 1000, "runAsGroup": 0, "runAsUser": 1000}
        assert "podAntiAffinity" in pod["affinity"]

        available = conditions(manager)["Available"]
        assert available["status"] == "False"

    def test_repeated_reconcile_is_identical(self, make_cluster, manager, product_config):
        seed_db(manager, "Ready")
        cluster = make_cluster()
        kinds = ("Service", "ConfigMap", "StatefulSet")

        reconcile(cluster, manager, product_config)
        first = [m for m in manager.applied if m["kind"] in kinds]
        manager.applied.clear()
        reconcile(cluster, manager, product_config)
        second = [m for m in manager.applied if m["kind"] in kinds]

        assert len(first) == 4
        assert second == first
        assert manager.deleted == []

    def test_only_first_git_sync_is_used(
        self, make_cluster, cluster_body, manager, product_config, caplog
    ):
        seed_db(manager, "Ready")
        cluster_body["spec"]["clusterConfig"]["dagsGitSync"] = [
            {"repo": "https://example.com/first.git", "gitFolder": "dags"},
            {"repo": "https://example.com/second.git"},
        ]

        with caplog.at_level(logging.WARNING, logger="odoo_operator.models.cluster"):
            reconcile(OdooCluster.from_body(cluster_body), manager, product_config)

        warnings = [
            r.getMessage() for r in caplog.records if r.name == "odoo_operator.models.cluster"
        ]
        assert len(warnings) == 1
        assert "2 git-sync entries" in warnings[0]
        assert "only the first one is considered" in warnings[0]

        (sts,) = manager.applied_of_kind("StatefulSet")
        containers = sts["spec"]["template"]["spec"]["containers"]
        git_sync = [c for c in containers if c["name"].startswith("gitsync")]
        assert [c["name"] for c in git_sync] == ["gitsync-1"]
        assert "--repo=https://example.com/first.git" in git_sync[0]["args"][0]
        env = {e["name"]: e.get("value") for e in containers[0]["env"]}
        assert env["ODOO__CORE__DAGS_FOLDER"] == "/stackable/app/git/current/dags"
        volumes = [v["name"] for v in sts["spec"]["template"]["spec"]["volumes"]]
        assert volumes.count("content-from-git") == 1

    def test_orphans_are_deleted(self, make_cluster, manager, product_config):
        seed_db(manager, "Ready")
        seed_orphan(manager)

        reconcile(make_cluster(), manager, product_config)

        assert ("StatefulSet", "default", "odoo-worker-old") in manager.deleted
        assert ("StatefulSet", "default", "odoo-webserver-default") in manager.objects

    def test_reconciliation_paused_changes_nothing(self, make_cluster, manager, product_config):
        seed_db(manager, "Ready")
        seed_orphan(manager)

        reconcile(
            make_cluster(clusterOperation={"reconciliationPaused": True}),
            manager,
            product_config,
        )

        assert [m["kind"] for m in manager.applied] == ["OdooDB"]
        assert manager.deleted == []
        assert conditions(manager)["ReconciliationPaused"]["status"] == "True"

    def test_stopped_scales_to_zero(self, make_cluster, manager, product_config):
        seed_db(manager, "Ready")

        reconcile(make_cluster(clusterOperation={"stopped": True}), manager, product_config)

        (sts,) = manager.applied_of_kind("StatefulSet")
        assert sts["spec"]["replicas"] == 0
        assert conditions(manager)["Stopped"]["status"] == "True"

    def test_failing_role_group_does_not_block_others(
        self, make_cluster, cluster_body, manager, product_config
    ):
        seed_db(manager, "Ready")
        seed_orphan(manager)
        cluster_body["spec"]["webservers"]["roleGroups"]["broken"] = {
            "replicas": 1,
            "configOverrides": {"webserver_config.py": {"AUTH_TYPE": "AUTH_NONE"}},
        }

        with pytest.raises(RoleGroupConfigError) as excinfo:
            reconcile(OdooCluster.from_body(cluster_body), manager, product_config)

        assert len(excinfo.value.failures) == 1
        assert "webserver/broken" in str(excinfo.value)
        names = [s["metadata"]["name"] for s in manager.applied_of_kind("StatefulSet")]
        assert names == ["odoo-webserver-default"]
        assert manager.deleted == []
        assert conditions(manager)["Degraded"]["status"] == "True"

    def test_overrides_reach_the_pod(self, make_cluster, cluster_body, manager, product_config):
        seed_db(manager, "Ready")
        webservers = cluster_body["spec"]["webservers"]
        webservers["envOverrides"] = {"FOO": "role"}
        webservers["roleGroups"]["default"]["envOverrides"] = {"FOO": "group"}
        webservers["roleGroups"]["default"]["podOverrides"] = {
            "spec": {"containers": [{"name": "odoo", "imagePullPolicy": "IfNotPresent"}]}
        }

        reconcile(OdooCluster.from_body(cluster_body), manager, product_config)

        (sts,) = manager.applied_of_kind("StatefulSet")
        main = sts["spec"]["template"]["spec"]["containers"][0]
        env = {e["name"]: e.get("value") for e in main["env"]}
        assert env["FOO"] == "group"
        assert main["imagePullPolicy"] == "IfNotPresent"
        assert main["image"] == "docker.stackable.tech/stackable/odoo:2.6.1-stackable0.0.0-dev"
