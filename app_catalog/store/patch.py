"""JSON merge patch (RFC 7386) helpers for record dicts."""

import copy
from typing import Any

__all__ = ["create_merge_patch", "apply_merge_patch"]


def create_merge_patch(old: dict[str, Any], new: dict[str, Any]) -> dict[str, Any]:
    """Return the merge patch that turns old into new.

    Keys removed in new are set to None. Lists are replaced wholesale.
    """
    patch: dict[str, Any] = {}
    for key in old.keys() - new.keys():
        patch[key] = None
    for key, value in new.items():
        if key not in old:
            patch[key] = copy.deepcopy(value)
            continue
        previous = old[key]
        if previous == value:
            continue
        if isinstance(previous, dict) and isinstance(value, dict):
            patch[key] = create_merge_patch(previous, value)
        else:
            patch[key] = copy.deepcopy(value)
    return patch


def apply_merge_patch(target: Any, patch: Any) -> Any:
    """Apply a merge patch to a target, returning the patched copy."""
    if not isinstance(patch, dict):
        return copy.deepcopy(patch)
    result = copy.deepcopy(target) if isinstance(target, dict) else {}
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        else:
            result[key] = apply_merge_patch(result.get(key), value)
    return result
