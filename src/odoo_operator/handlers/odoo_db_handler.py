"""Handlers for OdooDB resources, the init job and credential secrets."""

import logging

import kopf

from odoo_operator.constants import (
    API_GROUP,
    API_VERSION,
    APP_NAME,
    CRD_API_VERSION,
    ODOO_DB_KIND,
    ODOO_DB_PLURAL,
)
from odoo_operator.errors import OperatorError
from odoo_operator.handlers.common import get_context, request_reconcile, run_reconcile, to_plain
from odoo_operator.models.database import OdooDB, OdooDBStatusCondition
from odoo_operator.services.db_reconciler import reconcile_odoo_db

logger = logging.getLogger(__name__)


@kopf.on.resume(API_GROUP, API_VERSION, ODOO_DB_PLURAL)
@kopf.on.create(API_GROUP, API_VERSION, ODOO_DB_PLURAL)
@kopf.on.update(API_GROUP, API_VERSION, ODOO_DB_PLURAL)
def reconcile_db(body, name, namespace, **kwargs):
    """Advance the database bootstrap of an OdooDB by one step."""
    try:
        odoo_db = OdooDB.from_body(to_plain(body))
    except ValueError as e:
        kopf.warn(body, reason="InvalidSpec", message=str(e))
        raise kopf.PermanentError(f"Invalid OdooDB {namespace}/{name}: {e}") from e

    run_reconcile(reconcile_odoo_db, odoo_db, get_context().database)
    kopf.info(body, reason="Reconciled", message=f"OdooDB {name} reconciled")


@kopf.on.event("batch", "v1", "jobs", labels={"app.kubernetes.io/name": APP_NAME})
def init_job_changed(body, namespace, **kwargs):
    manager = get_context().database.manager
    conditions = (body.get("status") or {}).get("conditions") or []
    finished = sorted(c.get("type") for c in conditions if c.get("status") == "True")
    for owner in body.get("metadata", {}).get("ownerReferences") or []:
        if owner.get("kind") != ODOO_DB_KIND:
            continue
        try:
            odoo_db = manager.get_opt(CRD_API_VERSION, ODOO_DB_KIND, owner["name"], namespace)
            if odoo_db is not None:
                request_reconcile(manager, odoo_db, f"job-{'-'.join(finished) or 'running'}")
        except OperatorError as e:
            logger.warning(f"Could not trigger reconcile of OdooDB {namespace}/{owner['name']}: {e}")


@kopf.on.event("", "v1", "secrets")
def secret_changed(body, name, namespace, **kwargs):
    """Wake pending databases waiting for this credentials secret."""
    manager = get_context().database.manager
    try:
        databases = manager.list(CRD_API_VERSION, ODOO_DB_KIND, namespace)
    except OperatorError as e:
        logger.warning(f"Could not list OdooDBs in {namespace}: {e}")
        return
    for odoo_db in databases:
        status = odoo_db.get("status") or {}
        if (
            odoo_db.get("spec", {}).get("credentialsSecret") == name
            and status.get("condition") == OdooDBStatusCondition.PENDING.value
        ):
            request_reconcile(manager, odoo_db, f"secret-{name}")
