"""Turn logical operations into transport-ready request descriptors."""

from __future__ import annotations

import mimetypes
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import quote, urlencode

from .. import config
from ..errors import LocalValidationError
from .serializer import JsonSerializer, Serializer

if TYPE_CHECKING:  # pragma: no cover - import only for type checking
    from ..session import Session


class OperationKind(Enum):
    QUERY = "query"
    CREATE = "create"
    UPDATE = "update"
    REMOVE = "remove"
    UPLOAD_FILE = "upload_file"


class Area(Enum):
    """Backend collection an operation addresses."""

    OBJECTS = "objects"
    USERS = "users"
    USERGROUPS = "usergroups"
    USERGROUP_MEMBERS = "usergroup_members"
    ACCESS_CONTROL = "access_control"
    SEARCH = "search"
    SESSION = "session"
    FILES = "files"


_HTTP_METHODS: Dict[OperationKind, str] = {
    OperationKind.QUERY: "GET",
    OperationKind.CREATE: "POST",
    OperationKind.UPDATE: "PUT",
    OperationKind.REMOVE: "DELETE",
    OperationKind.UPLOAD_FILE: "POST",
}

_SUPPORTED: Dict[Area, frozenset] = {
    Area.OBJECTS: frozenset(
        {OperationKind.QUERY, OperationKind.CREATE, OperationKind.UPDATE, OperationKind.REMOVE}
    ),
    Area.USERS: frozenset(
        {OperationKind.QUERY, OperationKind.CREATE, OperationKind.UPDATE, OperationKind.REMOVE}
    ),
    Area.USERGROUPS: frozenset(
        {OperationKind.QUERY, OperationKind.CREATE, OperationKind.UPDATE, OperationKind.REMOVE}
    ),
    Area.USERGROUP_MEMBERS: frozenset(
        {OperationKind.QUERY, OperationKind.CREATE, OperationKind.REMOVE}
    ),
    Area.ACCESS_CONTROL: frozenset(
        {OperationKind.QUERY, OperationKind.CREATE, OperationKind.UPDATE, OperationKind.REMOVE}
    ),
    Area.SEARCH: frozenset({OperationKind.QUERY}),
    Area.SESSION: frozenset({OperationKind.CREATE, OperationKind.REMOVE}),
    Area.FILES: frozenset({OperationKind.UPLOAD_FILE}),
}

_QUERY_JSON_ITEMS: Tuple[Tuple[str, str], ...] = (
    ("query", "q"),
    ("sort", "sort"),
    ("include", "include"),
)


@dataclass(frozen=True)
class RequestDescriptor:
    """Immutable snapshot of one HTTP request."""

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    body: bytes = b""
    kind: OperationKind = OperationKind.QUERY
    area: Area = Area.OBJECTS


class RequestBuilder:
    """Build :class:`RequestDescriptor` values from a session snapshot.

    :meth:`build` raises :class:`LocalValidationError` when the payload cannot
    produce a request; nothing is sent in that case.
    """

    def __init__(self, serializer: Serializer | None = None) -> None:
        self._serializer = serializer or JsonSerializer()

    def build(
        self,
        kind: OperationKind,
        payload: Dict[str, Any],
        session: "Session",
        area: Area = Area.OBJECTS,
        file: str | Path | None = None,
    ) -> RequestDescriptor:
        payload = dict(payload or {})
        if area not in _SUPPORTED or kind not in _SUPPORTED[area]:
            raise LocalValidationError(f"{kind.value} is not supported for {area.value}")
        if kind in (OperationKind.CREATE, OperationKind.UPDATE, OperationKind.REMOVE) and not payload:
            raise LocalValidationError(f"empty payload for {kind.value}")

        base = session.api_url().rstrip("/") + config.API_VERSION_PATH
        headers = session.headers()

        if kind is OperationKind.UPLOAD_FILE:
            return self._build_upload(payload, headers, base, file)

        path, body_value = self._route(kind, area, payload)
        url = base + path
        body = b""
        if kind is OperationKind.QUERY:
            query_string = self._query_string(area, payload)
            if query_string:
                url += "?" + query_string
        elif body_value is not None:
            body = self._dump(body_value)

        return RequestDescriptor(
            method=_HTTP_METHODS[kind],
            url=url,
            headers=MappingProxyType(dict(headers)),
            body=body,
            kind=kind,
            area=area,
        )

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------
    def _route(
        self, kind: OperationKind, area: Area, payload: Dict[str, Any]
    ) -> Tuple[str, Optional[Any]]:
        """Return the URL path below the API root and the body value."""

        object_id = payload.get(config.OBJECT_ID_KEY)
        needs_id = kind in (OperationKind.UPDATE, OperationKind.REMOVE)

        if area is Area.OBJECTS:
            path = "/objects/" + _type_segment(payload)
            if needs_id:
                path += "/" + _id_segment(object_id)
            return path, None if kind is OperationKind.REMOVE else payload

        if area in (Area.USERS, Area.USERGROUPS):
            path = "/" + area.value
            if needs_id:
                path += "/" + _id_segment(object_id)
            return path, None if kind is OperationKind.REMOVE else payload

        if area is Area.USERGROUP_MEMBERS:
            path = f"/usergroups/{_id_segment(object_id)}/members"
            if kind is OperationKind.QUERY:
                return path, None
            member = payload.get("member")
            if not member:
                raise LocalValidationError("usergroup member operation without 'member'")
            return path, member

        if area is Area.ACCESS_CONTROL:
            path = f"/objects/{_type_segment(payload)}/{_id_segment(object_id)}/access"
            if kind is OperationKind.QUERY:
                return path, None
            access = payload.get("access")
            if not access:
                raise LocalValidationError("access control operation without 'access'")
            return path, access

        if area is Area.SEARCH:
            return "/search", None

        # Area.SESSION
        return "/auth/identity", payload if kind is OperationKind.CREATE else None

    def _query_string(self, area: Area, payload: Dict[str, Any]) -> str:
        items: List[Tuple[str, str]] = []
        if area is Area.SEARCH:
            search = {
                key: value for key, value in payload.items() if key not in ("limit", "offset")
            }
            items.append(("search", self._dump_text(search)))
        else:
            for key, name in _QUERY_JSON_ITEMS:
                if payload.get(key):
                    items.append((name, self._dump_text(payload[key])))
        for key in ("limit", "offset"):
            if payload.get(key) is not None:
                items.append((key, str(_int_item(payload, key))))
        if payload.get("count"):
            items.append(("count", "true"))
        return urlencode(items)

    def _build_upload(
        self,
        payload: Dict[str, Any],
        headers: Mapping[str, str],
        base: str,
        file: str | Path | None,
    ) -> RequestDescriptor:
        associated = payload.get("object")
        if not isinstance(associated, dict) or not associated.get(config.OBJECT_TYPE_KEY):
            raise LocalValidationError("upload without an associated object type")
        if file is None:
            raise LocalValidationError("upload without a file")

        path = Path(file)
        try:
            content = path.read_bytes()
        except OSError as exc:
            raise LocalValidationError(f"cannot read {path}: {exc}") from exc

        boundary = uuid.uuid4().hex
        mime = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        body = b"".join(
            [
                f"--{boundary}\r\n".encode("ascii"),
                b'Content-Disposition: form-data; name="object"\r\n',
                f"Content-Type: {config.JSON_CONTENT_TYPE}\r\n\r\n".encode("ascii"),
                self._dump(payload),
                f"\r\n--{boundary}\r\n".encode("ascii"),
                f'Content-Disposition: form-data; name="file"; filename="{path.name}"\r\n'.encode(
                    "utf-8"
                ),
                f"Content-Type: {mime}\r\n\r\n".encode("ascii"),
                content,
                f"\r\n--{boundary}--\r\n".encode("ascii"),
            ]
        )
        upload_headers = dict(headers)
        upload_headers[config.CONTENT_TYPE_HEADER] = f"multipart/form-data; boundary={boundary}"
        return RequestDescriptor(
            method=_HTTP_METHODS[OperationKind.UPLOAD_FILE],
            url=base + "/files",
            headers=MappingProxyType(upload_headers),
            body=body,
            kind=OperationKind.UPLOAD_FILE,
            area=Area.FILES,
        )

    def _dump(self, value: Any) -> bytes:
        try:
            return self._serializer.dumps(value)
        except (TypeError, ValueError) as exc:
            raise LocalValidationError(f"payload cannot be serialized: {exc}") from exc

    def _dump_text(self, value: Any) -> str:
        return self._dump(value).decode("utf-8")


def _type_segment(payload: Dict[str, Any]) -> str:
    object_type = str(payload.get(config.OBJECT_TYPE_KEY) or "")
    if object_type.startswith(config.USER_OBJECTS_PREFIX):
        object_type = object_type[len(config.USER_OBJECTS_PREFIX):]
    if not object_type:
        raise LocalValidationError("payload has no objectType")
    return quote(object_type, safe="")


def _int_item(payload: Dict[str, Any], key: str) -> int:
    value = payload[key]
    if isinstance(value, bool):
        raise LocalValidationError(f"{key} must be an integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise LocalValidationError(f"{key} must be an integer, got {value!r}") from exc
    if number < 0:
        raise LocalValidationError(f"{key} must not be negative, got {number}")
    return number


def _id_segment(object_id: Any) -> str:
    if not object_id:
        raise LocalValidationError("payload has no id")
    return quote(str(object_id), safe="")


__all__ = ["Area", "OperationKind", "RequestBuilder", "RequestDescriptor"]
