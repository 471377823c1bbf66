"""Partial configuration fragments and their layered merge.

A fragment mirrors an effective configuration type with every field
optional. Fragments are merged role group over role over operator defaults
(fields already set win) and the result is validated into the effective
type, which must have every required field present.
"""

import copy
import logging
from typing import Any, Type, TypeVar

from pydantic import BaseModel, ValidationError

from odoo_operator.errors import FragmentValidationError

logger = logging.getLogger(__name__)

F = TypeVar("F", bound="Fragment")
T = TypeVar("T", bound=BaseModel)


class Fragment(BaseModel):
    """Base class for partial configuration."""

    class Config:
        extra = "forbid"

    def merge_missing_from(self: F, defaults: F) -> F:
        """Return a copy of self with unset fields taken from ``defaults``.

        Nested fragments and maps of fragments merge recursively. Any other
        value (scalars, lists, free-form Kubernetes structures) is atomic:
        when set on self it replaces the default as a whole.
        """
        merged = {
            name: _merge_value(getattr(self, name), getattr(defaults, name))
            for name in type(self).model_fields
        }
        return self.model_copy(update=merged)


def _merge_value(value: Any, default: Any) -> Any:
    if value is None:
        return copy.deepcopy(default)
    if isinstance(value, Fragment) and isinstance(default, Fragment):
        return value.merge_missing_from(default)
    if isinstance(value, dict) and isinstance(default, dict) and _holds_fragments(value, default):
        merged = {k: copy.deepcopy(v) for k, v in default.items()}
        for key, item in value.items():
            merged[key] = _merge_value(item, default.get(key))
        return merged
    return copy.deepcopy(value)


def _holds_fragments(*maps) -> bool:
    return any(isinstance(v, Fragment) for m in maps for v in m.values())


def validate_fragment(fragment: Fragment, target: Type[T], **context: str) -> T:
    """Turn a fully merged fragment into its effective type."""
    try:
        return target.model_validate(fragment.model_dump(exclude_none=True))
    except ValidationError as e:
        missing = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise FragmentValidationError(
            f"failed to resolve {target.__name__}: invalid or missing {missing}",
            **context,
        ) from e


def resolve(
    default: F, role: F, role_group: F, target: Type[T], **context: str
) -> T:
    """Merge role group over role over defaults and validate the result."""
    merged = role_group.merge_missing_from(role.merge_missing_from(default))
    logger.debug(f"Merged config: {merged}")
    return validate_fragment(merged, target, **context)
