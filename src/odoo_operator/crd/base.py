"""Base classes for CRD specifications."""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime

from odoo_operator.errors import InvalidConfigError


class CRDMetadata(BaseModel):
    """Standard Kubernetes metadata for CRDs."""

    name: str
    namespace: Optional[str] = None
    uid: Optional[str] = None
    resourceVersion: Optional[str] = None
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)


class CRDCondition(BaseModel):
    """Custom Kubernetes condition."""

    type: str
    status: str  # True, False, Unknown
    reason: Optional[str] = None
    message: Optional[str] = None
    lastTransitionTime: Optional[datetime] = None
    lastUpdateTime: Optional[datetime] = None


class CRDStatus(BaseModel):
    """Base class for all CRD status objects."""

    conditions: List[CRDCondition] = Field(default_factory=list)

    class Config:
        extra = "allow"


class CRDSpec(BaseModel):
    """Base class for all CRD spec objects."""

    class Config:
        extra = "forbid"
        validate_assignment = True


class CustomResource(BaseModel):
    """A complete custom object as read from the API server."""

    apiVersion: str
    kind: str
    metadata: CRDMetadata

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> Optional[str]:
        return self.metadata.namespace

    def require_namespace(self) -> str:
        if not self.metadata.namespace:
            raise InvalidConfigError(
                "object has no namespace", object=f"{self.kind}/{self.name}"
            )
        return self.metadata.namespace

    def object_ref(self) -> Dict[str, Any]:
        """Minimal manifest identifying this object."""
        return {
            "apiVersion": self.apiVersion,
            "kind": self.kind,
            "metadata": {"name": self.name, "namespace": self.namespace},
        }

    def owner_reference(self) -> Dict[str, Any]:
        return {
            "apiVersion": self.apiVersion,
            "kind": self.kind,
            "name": self.name,
            "uid": self.metadata.uid,
            "controller": True,
            "blockOwnerDeletion": True,
        }

    def __str__(self) -> str:
        return f"{self.kind}/{self.namespace}/{self.name}"
