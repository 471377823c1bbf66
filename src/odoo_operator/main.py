import kopf
import logging
import kubernetes
import os
from dataclasses import dataclass
from typing import List, Optional

from odoo_operator import handlers  # noqa: F401
from odoo_operator.constants import (
    CLUSTER_CONTROLLER_NAME,
    DB_CONTROLLER_NAME,
    OPERATOR_NAME,
)
from odoo_operator.crd.generator import OdooCRDManager
from odoo_operator.services.cluster_reconciler import ClusterContext
from odoo_operator.services.db_reconciler import DatabaseContext
from odoo_operator.services.product_config import ProductConfigManager
from odoo_operator.services.resource_manager import ResourceManager

logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@dataclass
class OperatorContext:
    cluster: ClusterContext
    database: DatabaseContext


# Set during startup, read by the handlers
operator_context: Optional[OperatorContext] = None
product_config_paths: Optional[List[str]] = None


@kopf.on.startup()
def startup_fn(settings: kopf.OperatorSettings, **kwargs):
    """Load cluster access and product config, configure kopf."""
    global operator_context

    logger.info("Odoo Operator is starting up...")

    try:
        kubernetes.config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes config")
    except kubernetes.config.ConfigException:
        kubernetes.config.load_kube_config()
        logger.info("Loaded local Kubernetes config")

    if should_manage_crds():
        applied = OdooCRDManager().apply_crds_to_cluster()
        logger.info(f"Applied {applied} CRDs to cluster")

    env_paths = os.getenv("PRODUCT_CONFIG")
    product_config = ProductConfigManager.load(
        product_config_paths or (env_paths.split(os.pathsep) if env_paths else None)
    )

    api_client = kubernetes.client.ApiClient()
    operator_context = OperatorContext(
        cluster=ClusterContext(
            manager=ResourceManager(CLUSTER_CONTROLLER_NAME, api_client),
            product_config=product_config,
        ),
        database=DatabaseContext(manager=ResourceManager(DB_CONTROLLER_NAME, api_client)),
    )

    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage(
        prefix=OPERATOR_NAME
    )
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage(
        prefix=OPERATOR_NAME
    )
    settings.batching.worker_limit = int(os.getenv("WORKER_LIMIT", "5"))
    settings.posting.enabled = os.getenv("POSTING_ENABLED", "true").lower() == "true"
    settings.watching.server_timeout = int(os.getenv("SERVER_TIMEOUT", "60"))

    logger.info(f"Worker limit: {settings.batching.worker_limit}")
    logger.info(f"Posting enabled: {settings.posting.enabled}")
    logger.info("Odoo Operator startup complete")


@kopf.on.cleanup()
def cleanup_fn(**kwargs):
    logger.info("Odoo Operator is shutting down...")


def should_manage_crds() -> bool:
    """Determine if operator should apply its CRDs at startup."""
    return os.getenv("MANAGE_CRDS", "true").lower() == "true"


def run(watch_namespace: Optional[str] = None, product_config: Optional[List[str]] = None):
    """Run both controllers until interrupted."""
    global product_config_paths
    product_config_paths = product_config

    if watch_namespace:
        logger.info(f"Watching namespace {watch_namespace}")
        kopf.run(namespaces=[watch_namespace])
    else:
        kopf.run(clusterwide=True)


def main():
    try:
        run(os.getenv("WATCH_NAMESPACE") or None)
    except KeyboardInterrupt:
        logger.info("Operator stopped by user")
    except Exception as e:
        logger.error(f"Operator failed: {e}")
        raise


if __name__ == "__main__":
    main()
