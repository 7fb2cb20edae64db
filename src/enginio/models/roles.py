"""Role definitions shared by the list model and its views."""

from __future__ import annotations

from enum import IntEnum
from typing import Dict, Mapping

from PySide6.QtCore import Qt


class Roles(IntEnum):
    """Fixed roles every row exposes to QML or widgets."""

    ID = Qt.UserRole + 1
    OBJECT_TYPE = Qt.UserRole + 2
    CREATED_AT = Qt.UserRole + 3
    UPDATED_AT = Qt.UserRole + 4
    SYNCED = Qt.UserRole + 5


# Roles for the remaining object fields are handed out from here on, in the
# order the fields are first seen.
DYNAMIC_ROLE_BASE: int = Qt.UserRole + 100

FIXED_ROLE_FIELDS: Dict[int, str] = {
    Roles.ID: "id",
    Roles.OBJECT_TYPE: "objectType",
    Roles.CREATED_AT: "createdAt",
    Roles.UPDATED_AT: "updatedAt",
    Roles.SYNCED: "_synced",
}


def role_names(
    base: Mapping[int, bytes] | None = None,
    dynamic: Mapping[str, int] | None = None,
) -> Dict[int, bytes]:
    """Return a mapping of Qt role numbers to byte names."""

    mapping: Dict[int, bytes] = {} if base is None else dict(base)
    mapping.update({int(role): name.encode("utf-8") for role, name in FIXED_ROLE_FIELDS.items()})
    if dynamic:
        mapping.update({role: name.encode("utf-8") for name, role in dynamic.items()})
    return mapping
