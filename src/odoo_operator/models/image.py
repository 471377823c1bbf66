"""Product image selection."""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from odoo_operator.constants import DEFAULT_IMAGE_REPO, OPERATOR_VERSION
from odoo_operator.crd.base import CRDSpec


class ProductImage(CRDSpec):
    custom: Optional[str] = Field(
        default=None, description="Full image reference overriding the computed one"
    )
    productVersion: str = Field(..., description="Odoo version, e.g. 2.6.1")
    stackableVersion: Optional[str] = Field(
        default=None, description="Image build version, defaults to the operator version"
    )
    repo: Optional[str] = Field(default=None, description="Image repository")
    pullPolicy: str = Field(default="Always", description="Image pull policy")
    pullSecrets: List[Dict[str, str]] = Field(
        default_factory=list, description="References to image pull secrets"
    )

    def resolve(self, image_base_name: str) -> "ResolvedProductImage":
        if self.custom:
            image = self.custom
            app_version_label = self.productVersion
        else:
            stackable_version = self.stackableVersion or OPERATOR_VERSION
            repo = self.repo or DEFAULT_IMAGE_REPO
            app_version_label = f"{self.productVersion}-stackable{stackable_version}"
            image = f"{repo}/{image_base_name}:{app_version_label}"
        return ResolvedProductImage(
            image=image,
            app_version_label=app_version_label,
            product_version=self.productVersion,
            image_pull_policy=self.pullPolicy,
            pull_secrets=list(self.pullSecrets),
        )


class ResolvedProductImage(BaseModel):
    image: str
    app_version_label: str
    product_version: str
    image_pull_policy: str
    pull_secrets: List[Dict[str, str]] = []

    class Config:
        frozen = True
