"""Glue between kopf and the reconcilers."""

import logging
from collections.abc import Mapping
from typing import Any, Callable

import kopf

from odoo_operator.constants import ERROR_REQUEUE_SECONDS, TRIGGER_ANNOTATION
from odoo_operator.errors import InvalidConfigError, OperatorError
from odoo_operator.services.controller import Action

logger = logging.getLogger(__name__)


def to_plain(value: Any) -> Any:
    """Copy kopf body views into plain dicts and lists."""
    if isinstance(value, Mapping):
        return {k: to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    return value


def get_context():
    from odoo_operator.main import operator_context

    if operator_context is None:
        raise kopf.TemporaryError("Operator is not initialised", delay=ERROR_REQUEUE_SECONDS)
    return operator_context


def run_reconcile(reconcile: Callable[..., Action], obj, ctx) -> Action:
    """Run a reconciler, mapping errors onto kopf's retry semantics.

    Invalid configuration is permanent until the object changes; anything
    else is retried after a short delay.
    """
    try:
        action = reconcile(obj, ctx)
    except InvalidConfigError as e:
        logger.error(f"Reconcile of {obj} failed: {e}")
        raise kopf.PermanentError(str(e)) from e
    except OperatorError as e:
        logger.warning(f"Reconcile of {obj} will be retried: {e}")
        raise kopf.TemporaryError(str(e), delay=ERROR_REQUEUE_SECONDS) from e

    if action.requeue_after is not None:
        raise kopf.TemporaryError("requeue requested", delay=action.requeue_after)
    return action


def request_reconcile(manager, obj_ref, reason: str) -> None:
    """Wake the handler of ``obj_ref`` by changing its trigger annotation.

    The owning resource's own handler then runs, serialized with any other
    reconcile of that object. An unchanged reason is a no-op patch.
    """
    annotations = (obj_ref.get("metadata") or {}).get("annotations") or {}
    if annotations.get(TRIGGER_ANNOTATION) == reason:
        return
    logger.debug(f"Requesting reconcile of {obj_ref['kind']} {obj_ref['metadata']['name']}: {reason}")
    manager.annotate(obj_ref, {TRIGGER_ANNOTATION: reason})
