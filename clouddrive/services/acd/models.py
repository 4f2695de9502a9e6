"""Domain models and exceptions for the Amazon Cloud Drive integration."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Union

from requests import Response

from clouddrive.core.errors import CloudDriveError

from .utils import parse_datetime


class DriveError(CloudDriveError):
    """Base error raised for Cloud Drive failures."""

    def __init__(self, message: str, *, status_code: int | None = None, payload: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}


class DriveAuthError(DriveError):
    """Raised when authentication with Cloud Drive fails."""


class DriveNotFound(DriveError):
    """Raised when the API answers 404 for the requested resource."""


class DriveRetryableError(DriveError):
    """Raised for transient I/O issues (network/server errors)."""


class DriveRequestError(DriveError):
    """Raised for non-retryable HTTP or protocol errors."""


class DriveDecodeError(DriveError):
    """Raised when a response body cannot be decoded into the expected structure."""


class NodeLookupError(DriveError):
    """Raised when a name lookup does not resolve to exactly one node."""

    def __init__(self, message: str, *, name: str, count: int, response: Response | None = None) -> None:
        super().__init__(message)
        self.name = name
        self.count = count
        self.response = response


class NodeNotFoundError(NodeLookupError):
    """No node matched the requested name."""

    def __init__(self, name: str, *, response: Response | None = None) -> None:
        super().__init__(f"No node '{name}' found", name=name, count=0, response=response)


class AmbiguousNodeError(NodeLookupError):
    """More than one node matched the requested name."""

    def __init__(self, name: str, count: int, *, response: Response | None = None) -> None:
        super().__init__(f"Too many nodes '{name}' found ({count})", name=name, count=count, response=response)


class WrongKindError(DriveError):
    """Raised when a node does not have the kind an operation requires."""

    def __init__(self, name: str | None, expected: "NodeKind", *, actual: str | None = None) -> None:
        super().__init__(f"Node '{name}' is not a {expected.value.lower()}")
        self.name = name
        self.expected = expected
        self.actual = actual


class LocalResourceError(DriveError):
    """Raised when a local file cannot be read or written."""

    def __init__(self, message: str, *, path: str) -> None:
        super().__init__(message)
        self.path = path


class ListingError(DriveError):
    """Raised when a multi-page listing fails after zero or more pages."""

    def __init__(self, message: str, *, nodes: list["Node"], pages: int) -> None:
        super().__init__(message)
        self.nodes = nodes
        self.pages = pages


class WalkError(DriveError):
    """Raised when a path walk stops before resolving every segment.

    ``node`` is the deepest node resolved so far, ``responses`` holds the
    responses of the steps that succeeded and ``error`` the failure itself.
    """

    def __init__(self, *, node: "Node", responses: list[Response], error: Exception, segment: str) -> None:
        super().__init__(f"Walk stopped at '{segment}': {error}")
        self.node = node
        self.responses = responses
        self.error = error
        self.segment = segment


class NodeKind(str, Enum):
    """Node kinds the client knows how to specialise."""

    FILE = "FILE"
    FOLDER = "FOLDER"

    @classmethod
    def parse(cls, value: object) -> "NodeKind | None":
        if value == cls.FILE.value:
            return cls.FILE
        if value == cls.FOLDER.value:
            return cls.FOLDER
        return None


@dataclass(frozen=True)
class Node:
    """A file or folder entity on Cloud Drive.

    Nodes are plain values: they hold no reference to the service that
    fetched them. Follow-up calls take the node as an argument instead.
    """

    id: str | None
    name: str | None
    kind_raw: str | None = None
    size: int | None = None
    parents: tuple[str, ...] = ()
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def kind(self) -> NodeKind | None:
        return NodeKind.parse(self.kind_raw)

    def is_file(self) -> bool:
        """Return whether the node represents a file."""

        return self.kind is NodeKind.FILE

    def is_folder(self) -> bool:
        """Return whether the node represents a folder."""

        return self.kind is NodeKind.FOLDER

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "Node":
        """Decode a node record, ignoring fields the client does not model."""

        if not isinstance(data, Mapping):
            raise DriveDecodeError("Node record must be a JSON object", payload={"body": data})
        size: int | None = None
        content = data.get("contentProperties")
        if isinstance(content, Mapping) and content.get("size") is not None:
            size = _parse_int(content.get("size"), "contentProperties.size")
        parents = data.get("parents") or ()
        return cls(
            id=_optional_str(data.get("id")),
            name=_optional_str(data.get("name")),
            kind_raw=_optional_str(data.get("kind")),
            size=size,
            parents=tuple(str(p) for p in parents) if isinstance(parents, list) else (),
            raw=dict(data),
        )


@dataclass(frozen=True)
class _TypedNode:
    node: Node

    @property
    def id(self) -> str | None:
        return self.node.id

    @property
    def name(self) -> str | None:
        return self.node.name

    @property
    def size(self) -> int | None:
        return self.node.size


@dataclass(frozen=True)
class File(_TypedNode):
    """A node known to be a file; can be downloaded."""


@dataclass(frozen=True)
class Folder(_TypedNode):
    """A node known to be a folder; can be listed, searched and walked."""


TypedNode = Union[File, Folder, Node]


def classify(node: Node) -> TypedNode:
    """Return the node typed as either File or Folder, or unchanged when neither."""

    if node.is_file():
        return File(node)
    if node.is_folder():
        return Folder(node)
    return node


@dataclass(frozen=True)
class ListOptions:
    """Filter, sort and page size for a node listing."""

    limit: int | None = None
    filters: str | None = None
    sort: str | None = None


@dataclass(frozen=True)
class ListCursor:
    """Position in a paginated listing.

    ``complete`` becomes true once the server stops returning a continuation
    token; listing from a complete cursor issues no request.
    """

    token: str | None = None
    complete: bool = False


@dataclass
class NodePage:
    """One page of a listing and the cursor that continues it."""

    nodes: list[Node]
    cursor: ListCursor
    count: int | None = None
    response: Response | None = None

    def __len__(self) -> int:
        return len(self.nodes)


@dataclass
class WalkResult:
    """Deepest node reached by a walk and the response of each step."""

    node: Node
    responses: list[Response]


@dataclass(frozen=True)
class AccountInfo:
    """Account status and the accepted terms of use."""

    terms_of_use: str | None
    status: str | None

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "AccountInfo":
        data = _require_mapping(data, "account info")
        return cls(
            terms_of_use=_optional_str(data.get("termsOfUse")),
            status=_optional_str(data.get("status")),
        )


@dataclass(frozen=True)
class AccountQuota:
    """Storage quota and availability in bytes."""

    quota: int | None
    available: int | None
    last_calculated: datetime | None

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "AccountQuota":
        data = _require_mapping(data, "account quota")
        return cls(
            quota=_parse_int(data.get("quota"), "quota"),
            available=_parse_int(data.get("available"), "available"),
            last_calculated=_parse_timestamp(data.get("lastCalculated")),
        )


@dataclass(frozen=True)
class UsageNumbers:
    bytes: int | None = None
    count: int | None = None

    @classmethod
    def from_json(cls, data: Any) -> "UsageNumbers":
        if not isinstance(data, Mapping):
            return cls()
        return cls(
            bytes=_parse_int(data.get("bytes"), "bytes"),
            count=_parse_int(data.get("count"), "count"),
        )


@dataclass(frozen=True)
class CategoryUsage:
    total: UsageNumbers = field(default_factory=UsageNumbers)
    billable: UsageNumbers = field(default_factory=UsageNumbers)

    @classmethod
    def from_json(cls, data: Any) -> "CategoryUsage":
        if not isinstance(data, Mapping):
            return cls()
        return cls(
            total=UsageNumbers.from_json(data.get("total")),
            billable=UsageNumbers.from_json(data.get("billable")),
        )


USAGE_CATEGORIES = ("doc", "photo", "video", "other")


@dataclass(frozen=True)
class AccountUsage:
    """Account usage broken down by content category."""

    last_calculated: datetime | None
    other: CategoryUsage
    doc: CategoryUsage
    photo: CategoryUsage
    video: CategoryUsage

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "AccountUsage":
        data = _require_mapping(data, "account usage")
        return cls(
            last_calculated=_parse_timestamp(data.get("lastCalculated")),
            other=CategoryUsage.from_json(data.get("other")),
            doc=CategoryUsage.from_json(data.get("doc")),
            photo=CategoryUsage.from_json(data.get("photo")),
            video=CategoryUsage.from_json(data.get("video")),
        )


@dataclass(frozen=True)
class AccountEndpoint:
    """Customer specific metadata and content endpoints."""

    customer_exists: bool
    content_url: str | None
    metadata_url: str | None

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "AccountEndpoint":
        data = _require_mapping(data, "account endpoint")
        return cls(
            customer_exists=bool(data.get("customerExists", False)),
            content_url=_optional_str(data.get("contentUrl")),
            metadata_url=_optional_str(data.get("metadataUrl")),
        )


def _require_mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise DriveDecodeError(f"Invalid {what} response", payload={"body": data})
    return data


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _parse_int(value: Any, key: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise DriveDecodeError(f"Field '{key}' must be an integer", payload={key: value})
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise DriveDecodeError(f"Field '{key}' must be an integer", payload={key: value}) from exc


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None:
        return None
    parsed = parse_datetime(str(value))
    if parsed is None:
        raise DriveDecodeError("Invalid ISO-8601 timestamp", payload={"value": value})
    return parsed


__all__ = [
    "DriveError",
    "DriveAuthError",
    "DriveNotFound",
    "DriveRetryableError",
    "DriveRequestError",
    "DriveDecodeError",
    "NodeLookupError",
    "NodeNotFoundError",
    "AmbiguousNodeError",
    "WrongKindError",
    "LocalResourceError",
    "ListingError",
    "WalkError",
    "NodeKind",
    "Node",
    "File",
    "Folder",
    "TypedNode",
    "classify",
    "ListOptions",
    "ListCursor",
    "NodePage",
    "WalkResult",
    "AccountInfo",
    "AccountQuota",
    "AccountUsage",
    "AccountEndpoint",
    "CategoryUsage",
    "UsageNumbers",
    "USAGE_CATEGORIES",
]
