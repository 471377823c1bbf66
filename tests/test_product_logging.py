"""Tests for log configuration files."""

import pytest

from odoo_operator.errors import ConfigFileError, ExternalCallError
from odoo_operator.models.config import Container, Logging, LogLevel
from odoo_operator.services.product_logging import (
    extend_config_map_with_log_config,
    render_log_config,
    resolve_vector_aggregator_address,
)


def logging_config(enable_vector=False, custom=None, root="INFO"):
    container = {
        "console": {"level": "INFO"},
        "file": {"level": "INFO"},
        "loggers": {"ROOT": {"level": root}, "odoo.task": {"level": "DEBUG"}},
    }
    if custom:
        container["custom"] = {"configMap": custom}
    return Logging.model_validate(
        {"enableVectorAgent": enable_vector, "containers": {"odoo": container}}
    )


class TestExtendConfigMap:
    def test_log_config_is_added(self):
        data = extend_config_map_with_log_config({}, logging_config(), Container.ODOO, None, "x")
        assert set(data) == {"log_config.py"}

    def test_custom_config_map_skips_log_config(self):
        data = extend_config_map_with_log_config(
            {"a": "b"}, logging_config(custom="my-logs"), Container.ODOO, None, "x"
        )
        assert data == {"a": "b"}

    def test_vector_needs_address(self):
        with pytest.raises(ConfigFileError):
            extend_config_map_with_log_config(
                {}, logging_config(enable_vector=True), Container.ODOO, None, "x"
            )

    def test_vector_config(self):
        data = extend_config_map_with_log_config(
            {}, logging_config(enable_vector=True), Container.ODOO, "aggregator:6000", "x"
        )
        assert "address: aggregator:6000" in data["vector.yaml"]


class TestRenderLogConfig:
    def test_levels(self):
        config = logging_config(root="NONE").containers[Container.ODOO]
        rendered = render_log_config("odoo", config)
        assert "'level': logging.CRITICAL + 1," in rendered
        assert "'odoo.task': {'level': logging.DEBUG, 'propagate': True}," in rendered
        assert "/stackable/log/odoo/odoo.py.json" in rendered
        assert LogLevel.WARN.to_python_expression() == "logging.WARNING"


class TestResolveVectorAggregatorAddress:
    def test_no_config_map(self, manager):
        assert resolve_vector_aggregator_address(manager, "default", None) is None

    def test_missing_entry(self, manager):
        manager.seed(
            {
                "apiVersion": "v1",
                "kind": "ConfigMap",
                "metadata": {"name": "discovery", "namespace": "default"},
                "data": {},
            }
        )
        with pytest.raises(ExternalCallError):
            resolve_vector_aggregator_address(manager, "default", "discovery")
