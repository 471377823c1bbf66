"""Kopf handler modules for the Odoo operator."""

# Import handlers so kopf registers them
from . import cluster_handler
from . import odoo_db_handler

__all__ = ["cluster_handler", "odoo_db_handler"]
