"""OdooDB: the one-shot database bootstrap resource."""

from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

from pydantic import BaseModel, Field

from odoo_operator.constants import (
    API_GROUP,
    API_VERSION,
    CRD_API_VERSION,
    DB_CONTROLLER_NAME,
    ODOO_DB_KIND,
    ODOO_DB_PLURAL,
)
from odoo_operator.crd.base import CRDMetadata, CRDSpec, CustomResource
from odoo_operator.crd.registry import CRDRegistry
from odoo_operator.models.config import (
    ContainerLogConfigFragment,
    Logging,
    LoggingFragment,
    ContainerLogConfig,
    default_logging,
)
from odoo_operator.models.fragments import Fragment, validate_fragment
from odoo_operator.models.image import ProductImage
from odoo_operator.services.metadata import build_recommended_labels

if TYPE_CHECKING:
    from odoo_operator.models.cluster import OdooCluster
    from odoo_operator.models.image import ResolvedProductImage

DB_INITIALIZER_ROLE = "db-initializer"
DB_INITIALIZER_ROLE_GROUP = "global"


class DbContainer(str, Enum):
    ODOO_INIT_DB = "odoo-init-db"
    VECTOR = "vector"


class OdooDbLoggingFragment(LoggingFragment):
    containers: Optional[Dict[DbContainer, ContainerLogConfigFragment]] = None


class OdooDbLogging(Logging):
    containers: Dict[DbContainer, ContainerLogConfig]


class OdooDbConfigFragment(Fragment):
    logging: Optional[OdooDbLoggingFragment] = None


class OdooDbConfig(BaseModel):
    logging: OdooDbLogging


def default_db_config() -> OdooDbConfigFragment:
    return OdooDbConfigFragment(
        logging=OdooDbLoggingFragment(**default_logging(DbContainer))
    )


class OdooDBStatusCondition(str, Enum):
    PENDING = "Pending"
    INITIALIZING = "Initializing"
    READY = "Ready"
    FAILED = "Failed"


class OdooDBStatus(BaseModel):
    """Progress of the database bootstrap."""

    startedAt: Optional[datetime] = Field(
        default=None, description="When bootstrapping was first observed"
    )
    condition: OdooDBStatusCondition = Field(..., description="Bootstrap state")

    @classmethod
    def new(cls) -> "OdooDBStatus":
        return cls(
            startedAt=datetime.now(timezone.utc),
            condition=OdooDBStatusCondition.PENDING,
        )

    def with_condition(self, condition: OdooDBStatusCondition) -> "OdooDBStatus":
        """Same status in another state; ``startedAt`` is kept."""
        return self.model_copy(update={"condition": condition})


@CRDRegistry.register(
    API_GROUP,
    API_VERSION,
    ODOO_DB_KIND,
    ODOO_DB_PLURAL,
    status_model=OdooDBStatus,
)
class OdooDBSpec(CRDSpec):
    """Database bootstrap request derived from an OdooCluster."""

    image: ProductImage = Field(..., description="Product image used by the init job")
    credentialsSecret: str = Field(
        ..., description="Secret with connection strings and admin user"
    )
    vectorAggregatorConfigMapName: Optional[str] = Field(
        default=None, description="Discovery ConfigMap of the Vector aggregator"
    )
    config: OdooDbConfigFragment = Field(default_factory=OdooDbConfigFragment)


class OdooDB(CustomResource):
    spec: OdooDBSpec
    status: Optional[OdooDBStatus] = None

    @classmethod
    def from_body(cls, body: Dict[str, Any]) -> "OdooDB":
        body = dict(body)
        status = body.get("status") or {}
        # Fields written by the operator framework are not ours
        body["status"] = status if status.get("condition") else None
        return cls.model_validate(body)

    @classmethod
    def for_odoo(
        cls, cluster: "OdooCluster", resolved_image: "ResolvedProductImage"
    ) -> "OdooDB":
        """The database resource belonging to ``cluster``.

        It shares the cluster's name and namespace. It has no owner reference
        and outlives a deleted cluster.
        """
        cluster_config = cluster.spec.clusterConfig
        db_config = cluster_config.databaseInitialization or OdooDbConfigFragment()
        return cls(
            apiVersion=CRD_API_VERSION,
            kind=ODOO_DB_KIND,
            metadata=CRDMetadata(
                name=cluster.name,
                namespace=cluster.namespace,
                labels=build_recommended_labels(
                    cluster.name,
                    DB_CONTROLLER_NAME,
                    resolved_image.app_version_label,
                    DB_INITIALIZER_ROLE,
                    DB_INITIALIZER_ROLE_GROUP,
                ),
            ),
            spec=OdooDBSpec(
                image=cluster.spec.image,
                credentialsSecret=cluster_config.credentialsSecret,
                vectorAggregatorConfigMapName=cluster_config.vectorAggregatorConfigMapName,
                config=OdooDbConfigFragment(logging=db_config.logging),
            ),
        )

    def job_name(self) -> str:
        return self.name

    def merged_config(self) -> OdooDbConfig:
        merged = self.spec.config.merge_missing_from(default_db_config())
        return validate_fragment(merged, OdooDbConfig, object=str(self))

    def to_manifest(self) -> Dict[str, Any]:
        """Apply body: identity and spec only, status is written separately."""
        return {
            "apiVersion": self.apiVersion,
            "kind": self.kind,
            "metadata": self.metadata.model_dump(
                include={"name", "namespace", "labels"}
            ),
            "spec": self.spec.model_dump(mode="json", exclude_none=True),
        }
