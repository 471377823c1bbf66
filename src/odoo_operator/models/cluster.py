"""OdooCluster custom resource."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from odoo_operator.constants import (
    API_GROUP,
    API_VERSION,
    GIT_CONTENT,
    GIT_LINK,
    GIT_ROOT,
    GIT_SYNC_BRANCH,
    GIT_SYNC_DEPTH,
    GIT_SYNC_DIR,
    GIT_SYNC_FOLDER,
    GIT_SYNC_WAIT,
    ODOO_CLUSTER_KIND,
    ODOO_CLUSTER_PLURAL,
)
from odoo_operator.crd.base import CRDCondition, CRDSpec, CRDStatus, CustomResource
from odoo_operator.crd.registry import CRDRegistry
from odoo_operator.errors import UnknownRoleError
from odoo_operator.models.config import OdooConfig, OdooConfigFragment, default_config
from odoo_operator.models.database import OdooDbConfigFragment
from odoo_operator.models.fragments import resolve
from odoo_operator.models.image import ProductImage
from odoo_operator.models.roles import OdooRole

logger = logging.getLogger(__name__)

# git-sync options the operator sets itself
GIT_SYNC_RESERVED_OPTIONS = ("--dest", "--root", "--git-config")


class GitSync(CRDSpec):
    """A git repository synchronised into the pods."""

    name: Optional[str] = Field(default=None, description="Informational name")
    repo: str = Field(..., description="Repository URL")
    branch: Optional[str] = Field(default=None, description="Branch, defaults to main")
    gitFolder: Optional[str] = Field(
        default=None, description="Folder inside the repository holding the content"
    )
    depth: Optional[int] = Field(default=None, description="Clone depth")
    wait: Optional[int] = Field(default=None, description="Seconds between syncs")
    credentialsSecret: Optional[str] = Field(
        default=None, description="Secret with 'user' and 'password' keys"
    )
    gitSyncConf: Optional[Dict[str, str]] = Field(
        default=None, description="Extra git-sync command line options"
    )

    def get_args(self) -> List[str]:
        """git-sync command line."""
        args = [
            "/stackable/git-sync",
            f"--repo={self.repo}",
            f"--branch={self.branch or GIT_SYNC_BRANCH}",
            f"--depth={self.depth or GIT_SYNC_DEPTH}",
            f"--wait={self.wait or GIT_SYNC_WAIT}",
            f"--dest={GIT_LINK}",
            f"--root={GIT_ROOT}",
            f"--git-config=safe.directory:{GIT_ROOT}",
        ]
        for key, value in (self.gitSyncConf or {}).items():
            if key.lower() in GIT_SYNC_RESERVED_OPTIONS:
                logger.warning(f"Config option {key!r} will be ignored...")
            else:
                args.append(f"{key}={value}")
        return args

    @property
    def folder(self) -> str:
        return self.gitFolder or GIT_SYNC_FOLDER


class LdapRolesSyncMoment(str, Enum):
    REGISTRATION = "Registration"
    LOGIN = "Login"


class OdooClusterAuthenticationConfig(CRDSpec):
    authenticationClass: Optional[str] = Field(
        default=None, description="Name of a cluster scoped AuthenticationClass"
    )
    userRegistration: bool = Field(
        default=True, description="Create unknown users on first login"
    )
    userRegistrationRole: str = Field(
        default="Public", description="Role given to registered users"
    )
    syncRolesAt: LdapRolesSyncMoment = Field(
        default=LdapRolesSyncMoment.REGISTRATION,
        description="When roles are synchronised from LDAP",
    )


class ListenerClass(str, Enum):
    CLUSTER_INTERNAL = "cluster-internal"
    EXTERNAL_UNSTABLE = "external-unstable"
    EXTERNAL_STABLE = "external-stable"

    def k8s_service_type(self) -> str:
        return _SERVICE_TYPES[self]


_SERVICE_TYPES = {
    ListenerClass.CLUSTER_INTERNAL: "ClusterIP",
    ListenerClass.EXTERNAL_UNSTABLE: "NodePort",
    ListenerClass.EXTERNAL_STABLE: "LoadBalancer",
}


class OdooClusterConfig(CRDSpec):
    authenticationConfig: Optional[OdooClusterAuthenticationConfig] = None
    credentialsSecret: str = Field(
        ..., description="Secret with connection strings and the admin user"
    )
    dagsGitSync: List[GitSync] = Field(
        default_factory=list, description="Only the first entry is used"
    )
    databaseInitialization: Optional[OdooDbConfigFragment] = None
    executor: Optional[str] = Field(default=None, description="Executor mode")
    exposeConfig: Optional[bool] = None
    loadExamples: Optional[bool] = None
    listenerClass: ListenerClass = ListenerClass.CLUSTER_INTERNAL
    vectorAggregatorConfigMapName: Optional[str] = None
    volumes: Optional[List[Dict[str, Any]]] = Field(
        default=None, description="Extra pod volumes"
    )
    volumeMounts: Optional[List[Dict[str, Any]]] = Field(
        default=None, description="Extra mounts of the main container"
    )


class ClusterOperation(CRDSpec):
    reconciliationPaused: bool = False
    stopped: bool = False


class RoleGroup(CRDSpec):
    config: OdooConfigFragment = Field(default_factory=OdooConfigFragment)
    configOverrides: Dict[str, Dict[str, str]] = Field(default_factory=dict)
    envOverrides: Dict[str, str] = Field(default_factory=dict)
    podOverrides: Dict[str, Any] = Field(default_factory=dict)
    replicas: Optional[int] = Field(default=None, ge=0)
    selector: Optional[Dict[str, Any]] = Field(
        default=None, description="Deprecated, use config.affinity"
    )


class Role(CRDSpec):
    config: OdooConfigFragment = Field(default_factory=OdooConfigFragment)
    configOverrides: Dict[str, Dict[str, str]] = Field(default_factory=dict)
    envOverrides: Dict[str, str] = Field(default_factory=dict)
    podOverrides: Dict[str, Any] = Field(default_factory=dict)
    roleGroups: Dict[str, RoleGroup] = Field(default_factory=dict)


class OdooClusterStatus(CRDStatus):
    pass


@CRDRegistry.register(
    API_GROUP,
    API_VERSION,
    ODOO_CLUSTER_KIND,
    ODOO_CLUSTER_PLURAL,
    short_names=["odoo"],
    status_model=OdooClusterStatus,
)
class OdooClusterSpec(CRDSpec):
    """An Odoo installation: webservers, schedulers and workers."""

    image: ProductImage
    clusterConfig: OdooClusterConfig
    clusterOperation: ClusterOperation = Field(default_factory=ClusterOperation)
    webservers: Optional[Role] = None
    schedulers: Optional[Role] = None
    workers: Optional[Role] = None


@dataclass(frozen=True)
class RoleGroupRef:
    cluster_name: str
    namespace: str
    role: str
    role_group: str

    def object_name(self) -> str:
        return f"{self.cluster_name}-{self.role}-{self.role_group}"

    def __str__(self) -> str:
        return f"{self.namespace}/{self.cluster_name}/{self.role}/{self.role_group}"


class OdooCluster(CustomResource):
    spec: OdooClusterSpec
    status: Optional[OdooClusterStatus] = None

    @classmethod
    def from_body(cls, body: Dict[str, Any]) -> "OdooCluster":
        return cls.model_validate(body)

    @property
    def conditions(self) -> List[CRDCondition]:
        return self.status.conditions if self.status else []

    def get_role(self, role: OdooRole) -> Optional[Role]:
        return getattr(self.spec, role.spec_key)

    def role_group_ref(self, role: OdooRole, role_group: str) -> RoleGroupRef:
        return RoleGroupRef(self.name, self.require_namespace(), role.value, role_group)

    def git_sync(self) -> Optional[GitSync]:
        """The git-sync source; only the first configured entry is used."""
        entries = self.spec.clusterConfig.dagsGitSync
        if len(entries) > 1:
            logger.warning(
                f"{len(entries)} git-sync entries configured for {self}, "
                "only the first one is considered"
            )
        return entries[0] if entries else None

    def volumes(self) -> List[Dict[str, Any]]:
        volumes = list(self.spec.clusterConfig.volumes or [])
        if self.spec.clusterConfig.dagsGitSync:
            volumes.append({"name": GIT_CONTENT, "emptyDir": {}})
        return volumes

    def volume_mounts(self) -> List[Dict[str, Any]]:
        mounts = list(self.spec.clusterConfig.volumeMounts or [])
        if self.spec.clusterConfig.dagsGitSync:
            mounts.append({"name": GIT_CONTENT, "mountPath": GIT_SYNC_DIR})
        return mounts

    def merged_config(self, role: OdooRole, role_group: RoleGroupRef) -> OdooConfig:
        """Resolve defaults, role and role group configuration."""
        role_spec = self.get_role(role)
        if role_spec is None:
            raise UnknownRoleError(
                f"role {role.value!r} is not defined, expected one of {OdooRole.roles()}",
                rolegroup=str(role_group),
            )
        defaults = default_config(self.name, role)
        group = role_spec.roleGroups.get(role_group.role_group)
        group_config = group.config if group else OdooConfigFragment()
        if group is not None and group.selector:
            group_config = group_config.with_legacy_selector(group.selector)
        return resolve(
            defaults, role_spec.config, group_config, OdooConfig, rolegroup=str(role_group)
        )
