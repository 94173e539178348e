"""
Client-supplied identifier checks.

Folder and note ids are 32 lowercase hex characters (see models.folder.new_resource_id).
Anything else is rejected before it reaches the store.
"""

import re

from folioscan.exceptions import ValidationError
from folioscan.models.folder import ROOT_PARENT

_RESOURCE_ID = re.compile(r"[0-9a-f]{32}")


def require_resource_id(value: str, field: str = "id") -> str:
    """Return `value` if it is a well-formed id, else raise ValidationError."""
    if not isinstance(value, str) or not _RESOURCE_ID.fullmatch(value):
        raise ValidationError(message=f"Invalid {field}", field=field)
    return value


def require_parent_ref(value: str, field: str = "parentId") -> str:
    """Like require_resource_id, but "" (top level) is also accepted."""
    if not value:
        return ROOT_PARENT
    return require_resource_id(value, field=field)
