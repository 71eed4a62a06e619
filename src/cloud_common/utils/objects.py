"""Helpers for inspecting client objects."""

from typing import Any


def _type_name(obj: Any) -> str:
    return type(obj).__name__.lower()


def is_custom_type(obj: Any, module: str) -> bool:
    """
    Check whether ``obj`` belongs to a client module.

    ``module`` is ``"<parent>"`` or ``"<parent>/<child>"``: the object's
    class name must match ``<child>`` when given, and the object or one of
    its ``parent`` ancestors must be a ``<parent>`` instance. Names compare
    case-insensitively, e.g. ``is_custom_type(file, "storage/file")``.
    """
    parent_name, _, child_name = module.lower().partition("/")

    if child_name and _type_name(obj) != child_name:
        return False

    walking = obj
    while walking is not None:
        if _type_name(walking) == parent_name:
            return True
        walking = getattr(walking, "parent", None)

    return False


__all__ = ["is_custom_type"]
