"""Reconciler of OdooDB resources: drives the database bootstrap."""

import logging
from dataclasses import dataclass

from odoo_operator.constants import DB_CONTROLLER_NAME, DOCKER_IMAGE_BASE_NAME
from odoo_operator.errors import DependencyNotReadyError, ExternalCallError
from odoo_operator.models.database import (
    DB_INITIALIZER_ROLE,
    DB_INITIALIZER_ROLE_GROUP,
    OdooDB,
    OdooDBStatusCondition,
)
from odoo_operator.services.controller import Action
from odoo_operator.services.db_builder import build_init_db_config_map, build_init_job
from odoo_operator.services.db_state import DbStep, get_job_state, next_transition
from odoo_operator.services.metadata import build_recommended_labels
from odoo_operator.services.product_logging import resolve_vector_aggregator_address
from odoo_operator.services.rbac import build_rbac_resources
from odoo_operator.services.resource_manager import ResourceManager

logger = logging.getLogger(__name__)

INITIALIZE_REQUEUE_SECONDS = 1


@dataclass
class DatabaseContext:
    manager: ResourceManager


def reconcile_odoo_db(odoo_db: OdooDB, ctx: DatabaseContext) -> Action:
    logger.info(f"Starting reconcile of {odoo_db}")
    manager = ctx.manager
    namespace = odoo_db.require_namespace()
    image = odoo_db.spec.image.resolve(DOCKER_IMAGE_BASE_NAME)

    labels = build_recommended_labels(
        odoo_db.name,
        DB_CONTROLLER_NAME,
        image.app_version_label,
        DB_INITIALIZER_ROLE,
        DB_INITIALIZER_ROLE_GROUP,
    )
    service_account, role_binding = build_rbac_resources(
        odoo_db, f"{odoo_db.name}-db", labels
    )
    try:
        manager.apply(service_account)
        manager.apply(role_binding)
    except ExternalCallError as e:
        raise ExternalCallError("failed to apply RBAC", object=str(odoo_db)) from e
    service_account_name = service_account["metadata"]["name"]

    status = odoo_db.status
    condition = status.condition if status else None
    secret_exists = False
    job_state = None

    if condition is OdooDBStatusCondition.PENDING:
        secret = manager.get_opt("v1", "Secret", odoo_db.spec.credentialsSecret, namespace)
        secret_exists = secret is not None
    elif condition is OdooDBStatusCondition.INITIALIZING:
        try:
            job = manager.get("batch/v1", "Job", odoo_db.job_name(), namespace)
        except ExternalCallError as e:
            raise ExternalCallError(
                "failed to get initialization job", object=str(odoo_db)
            ) from e
        job_state = get_job_state(job)

    transition = next_transition(status, secret_exists=secret_exists, job_state=job_state)
    logger.debug(f"{odoo_db}: {condition} -> {transition}")

    if transition.step is DbStep.WAIT_FOR_SECRET:
        raise DependencyNotReadyError(
            "credentials secret not found",
            secret=f"{namespace}/{odoo_db.spec.credentialsSecret}",
        )

    if transition.step is DbStep.START_JOB:
        config = odoo_db.merged_config()
        vector_address = resolve_vector_aggregator_address(
            manager, namespace, odoo_db.spec.vectorAggregatorConfigMapName
        )
        config_map = build_init_db_config_map(odoo_db, image, config, vector_address)
        job = build_init_job(odoo_db, image, service_account_name, config)
        try:
            manager.apply(config_map)
            manager.apply(job)
        except ExternalCallError as e:
            raise ExternalCallError(
                "failed to apply initialization job", object=str(odoo_db)
            ) from e

    new_status = transition.apply(status)
    if new_status is not None:
        manager.apply_status(odoo_db.object_ref(), new_status.model_dump(mode="json"))
        logger.info(f"{odoo_db} is now {new_status.condition.value}")

    if transition.step is DbStep.INITIALIZE:
        # status writes do not wake the handler, look for the secret again
        return Action.requeue(INITIALIZE_REQUEUE_SECONDS)
    return Action.await_change()
