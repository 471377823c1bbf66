"""CRD management system for the Odoo operator."""

from .registry import CRDRegistry
from .base import CRDSpec, CRDStatus, CRDMetadata, CRDCondition, CustomResource

__all__ = [
    "CRDRegistry",
    "CRDSpec",
    "CRDStatus",
    "CRDMetadata",
    "CRDCondition",
    "CustomResource",
]
