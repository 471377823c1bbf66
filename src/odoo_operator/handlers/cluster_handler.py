"""Handlers for OdooCluster resources and the objects they depend on."""

import logging

import kopf

from odoo_operator.constants import (
    API_GROUP,
    API_VERSION,
    APP_NAME,
    CRD_API_VERSION,
    ODOO_CLUSTER_KIND,
    ODOO_CLUSTER_PLURAL,
    ODOO_DB_PLURAL,
)
from odoo_operator.errors import OperatorError
from odoo_operator.handlers.common import get_context, request_reconcile, run_reconcile, to_plain
from odoo_operator.models.cluster import OdooCluster
from odoo_operator.services.authentication import (
    AUTHENTICATION_CLASS_KIND,
)
from odoo_operator.services.cluster_reconciler import reconcile_odoo

logger = logging.getLogger(__name__)


@kopf.on.resume(API_GROUP, API_VERSION, ODOO_CLUSTER_PLURAL)
@kopf.on.create(API_GROUP, API_VERSION, ODOO_CLUSTER_PLURAL)
@kopf.on.update(API_GROUP, API_VERSION, ODOO_CLUSTER_PLURAL)
def reconcile_cluster(body, name, namespace, **kwargs):
    """Reconcile an OdooCluster into Services, ConfigMaps and StatefulSets."""
    try:
        cluster = OdooCluster.from_body(to_plain(body))
    except ValueError as e:
        kopf.warn(body, reason="InvalidSpec", message=str(e))
        raise kopf.PermanentError(f"Invalid OdooCluster {namespace}/{name}: {e}") from e

    run_reconcile(reconcile_odoo, cluster, get_context().cluster)
    kopf.info(body, reason="Reconciled", message=f"OdooCluster {name} reconciled")


def _trigger_cluster(name, namespace, reason):
    manager = get_context().cluster.manager
    try:
        cluster = manager.get_opt(CRD_API_VERSION, ODOO_CLUSTER_KIND, name, namespace)
        if cluster is not None:
            request_reconcile(manager, cluster, reason)
    except OperatorError as e:
        logger.warning(f"Could not trigger reconcile of OdooCluster {namespace}/{name}: {e}")


@kopf.on.event(API_GROUP, API_VERSION, ODOO_DB_PLURAL)
def odoo_db_changed(body, name, namespace, **kwargs):
    """The OdooDB shares its cluster's name; wake the cluster on progress."""
    condition = (body.get("status") or {}).get("condition")
    if condition:
        _trigger_cluster(name, namespace, f"db-{condition}")


@kopf.on.event("apps", "v1", "statefulsets", labels={"app.kubernetes.io/name": APP_NAME})
def stateful_set_changed(body, namespace, **kwargs):
    for owner in body.get("metadata", {}).get("ownerReferences") or []:
        if owner.get("kind") != ODOO_CLUSTER_KIND:
            continue
        status = body.get("status") or {}
        ready = f"{status.get('availableReplicas') or 0}/{body.get('spec', {}).get('replicas') or 0}"
        _trigger_cluster(owner["name"], namespace, f"sts-{body['metadata']['name']}-{ready}")


@kopf.on.event("authentication.stackable.tech", "v1alpha1", "authenticationclasses")
def authentication_class_changed(body, name, **kwargs):
    manager = get_context().cluster.manager
    version = body.get("metadata", {}).get("resourceVersion", "")
    for cluster in manager.list(CRD_API_VERSION, ODOO_CLUSTER_KIND):
        auth = (cluster.get("spec", {}).get("clusterConfig") or {}).get("authenticationConfig") or {}
        if auth.get("authenticationClass") == name:
            request_reconcile(manager, cluster, f"{AUTHENTICATION_CLASS_KIND}-{name}-{version}")
