"""Names, paths and ports shared by the Odoo operator."""

APP_NAME = "odoo"
OPERATOR_NAME = "odoo.stackable.tech"

API_GROUP = "odoo.stackable.tech"
API_VERSION = "v1alpha1"
CRD_API_VERSION = f"{API_GROUP}/{API_VERSION}"
ODOO_CLUSTER_KIND = "OdooCluster"
ODOO_CLUSTER_PLURAL = "odooclusters"
ODOO_DB_KIND = "OdooDB"
ODOO_DB_PLURAL = "odoodbs"

CLUSTER_CONTROLLER_NAME = "odoocluster"
DB_CONTROLLER_NAME = "odoo-db"
DOCKER_IMAGE_BASE_NAME = "odoo"
DEFAULT_IMAGE_REPO = "docker.stackable.tech/stackable"
OPERATOR_VERSION = "0.1.0"

ODOO_UID = 1000
CONFIG_PATH = "/stackable/app/config"
STACKABLE_LOG_DIR = "/stackable/log"
LOG_CONFIG_DIR = "/stackable/app/log_config"
ODOO_HOME = "/stackable/odoo"
ODOO_CONFIG_FILENAME = "webserver_config.py"
LOG_CONFIG_FILENAME = "log_config.py"
VECTOR_CONFIG_FILENAME = "vector.yaml"
SECRETS_DIR = "/stackable/secrets"

GIT_SYNC_DIR = "/stackable/app/git"
GIT_CONTENT = "content-from-git"
GIT_ROOT = "/tmp/git"
GIT_LINK = "current"
GIT_SYNC_NAME = "gitsync"
GIT_SYNC_DEPTH = 1
GIT_SYNC_WAIT = 20
GIT_SYNC_BRANCH = "main"
GIT_SYNC_FOLDER = "/"

METRICS_PORT_NAME = "metrics"
METRICS_PORT = 9102
HTTP_PORT_NAME = "http"
SERVICE_PORT_NAME = "odoo"

CONFIG_VOLUME_NAME = "config"
LOG_CONFIG_VOLUME_NAME = "log-config"
LOG_VOLUME_NAME = "log"
MAX_LOG_FILES_SIZE_MIB = 10

ERROR_REQUEUE_SECONDS = 5
# kopf strips its own prefix from the diff essence
TRIGGER_ANNOTATION = f"reconcile.{OPERATOR_NAME}/trigger"

PRODUCT_CONFIG_PATHS = (
    "deploy/config-spec/properties.yaml",
    "/etc/stackable/odoo-operator/config-spec/properties.yaml",
)
