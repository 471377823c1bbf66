"""Tests for labels and pod override merging."""

from odoo_operator.services.metadata import (
    build_recommended_labels,
    deep_merge,
    required_labels,
)


class TestLabels:
    def test_recommended_contain_required(self):
        labels = build_recommended_labels("simple", "odoocluster", "2.6.1", "worker", "default")
        required = required_labels("simple", "odoocluster")
        assert required.items() <= labels.items()
        assert labels["app.kubernetes.io/managed-by"] == "odoo.stackable.tech_odoocluster"


class TestDeepMerge:
    def test_maps_merge_recursively(self):
        base = {"spec": {"a": 1, "b": {"c": 2}}}
        assert deep_merge(base, {"spec": {"b": {"d": 3}}}) == {
            "spec": {"a": 1, "b": {"c": 2, "d": 3}}
        }
        assert base == {"spec": {"a": 1, "b": {"c": 2}}}

    def test_named_lists_merge_by_name(self):
        base = [{"name": "odoo", "image": "a"}, {"name": "metrics"}]
        override = [{"name": "odoo", "image": "b"}, {"name": "extra"}]
        assert deep_merge(base, override) == [
            {"name": "odoo", "image": "b"},
            {"name": "metrics"},
            {"name": "extra"},
        ]

    def test_other_lists_are_replaced(self):
        assert deep_merge({"args": ["a", "b"]}, {"args": ["c"]}) == {"args": ["c"]}
