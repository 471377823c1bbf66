"""Business logic for the Odoo operator."""
