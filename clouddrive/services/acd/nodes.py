"""Node listing, folder navigation and content transfer for Cloud Drive.

See: https://developer.amazon.com/public/apis/experience/cloud-drive/content/nodes
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping

from requests import Response

from clouddrive.core.logger import get_logger

from .config import AcdConfig, load_chunk_size
from .http import HttpClient, decode_json
from .models import (
    AmbiguousNodeError,
    DriveDecodeError,
    File,
    Folder,
    ListCursor,
    ListingError,
    ListOptions,
    LocalResourceError,
    Node,
    NodeKind,
    NodeNotFoundError,
    NodePage,
    WalkError,
    WalkResult,
    WrongKindError,
    classify,
)
from .paths import filter_clause, join_filters, normalize_item_name, split_drive_path
from .uploader import FormField, MultipartStream
from .utils import detect_mime_type

LOGGER = get_logger()

ROOT_FILTER = "kind:FOLDER AND isRoot:true"


class NodesService:
    """Access to the nodes (files and folders) of a Cloud Drive account."""

    def __init__(
        self,
        config: AcdConfig,
        http_client: HttpClient,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._http = http_client
        self._logger = logger or LOGGER
        self._chunk_size = load_chunk_size(config)

    # Listing ----------------------------------------------------------

    def list_page(
        self,
        path: str,
        options: ListOptions | None = None,
        cursor: ListCursor | None = None,
    ) -> NodePage:
        """Fetch one page of nodes under ``path``.

        Returns the decoded nodes in server order together with the cursor
        that continues the listing. A complete cursor yields an empty page
        without contacting the server.
        """

        cursor = cursor or ListCursor()
        if cursor.complete:
            return NodePage(nodes=[], cursor=cursor)

        response = self._http.request_metadata("GET", path, params=_query_params(options, cursor))
        envelope = decode_json(response)
        if not isinstance(envelope, Mapping):
            raise DriveDecodeError("Node list response must be a JSON object", payload={"body": envelope})
        records = envelope.get("data") or []
        if not isinstance(records, list):
            raise DriveDecodeError("Node list 'data' must be an array", payload={"data": records})
        nodes = [Node.from_json(record) for record in records]

        next_token = envelope.get("nextToken")
        if next_token:
            next_cursor = ListCursor(token=str(next_token))
        else:
            next_cursor = ListCursor(token=cursor.token, complete=True)
        count = envelope.get("count")

        self._logger.debug(
            "acd.nodes list_page path=%s received=%d count=%s complete=%s",
            path,
            len(nodes),
            count,
            next_cursor.complete,
        )
        return NodePage(
            nodes=nodes,
            cursor=next_cursor,
            count=count if isinstance(count, int) else None,
            response=response,
        )

    def list_all(
        self,
        path: str,
        options: ListOptions | None = None,
        *,
        max_pages: int | None = None,
    ) -> list[Node]:
        """Fetch every page of nodes under ``path`` in arrival order.

        Raises:
            ListingError: If a page fails or ``max_pages`` is exceeded. The
                error carries the nodes accumulated before the failure.
        """

        result: list[Node] = []
        cursor = ListCursor()
        pages = 0
        while True:
            if max_pages is not None and pages >= max_pages and not cursor.complete:
                raise ListingError(
                    f"Listing of '{path}' exceeded {max_pages} pages",
                    nodes=result,
                    pages=pages,
                )
            try:
                page = self.list_page(path, options, cursor)
            except Exception as exc:
                self._logger.warning(
                    "acd.nodes list_all_failed path=%s pages=%d nodes=%d error=%s",
                    path,
                    pages,
                    len(result),
                    exc,
                )
                raise ListingError(
                    f"Listing of '{path}' failed after {pages} page(s): {exc}",
                    nodes=result,
                    pages=pages,
                ) from exc
            if not page.nodes:
                break
            pages += 1
            result.extend(page.nodes)
            cursor = page.cursor

        self._logger.info("acd.nodes list_all path=%s pages=%d nodes=%d", path, pages, len(result))
        return result

    def get_nodes(self, options: ListOptions | None = None, cursor: ListCursor | None = None) -> NodePage:
        """Get a page of nodes, up to the default or requested limit."""

        return self.list_page("nodes", options, cursor)

    def get_all_nodes(self, options: ListOptions | None = None) -> list[Node]:
        return self.list_all("nodes", options)

    def get_root(self) -> Folder:
        """Get the root folder of the drive."""

        page = self.get_nodes(ListOptions(filters=ROOT_FILTER))
        if not page.nodes:
            raise NodeNotFoundError("root", response=page.response)
        root = classify(page.nodes[0])
        if not isinstance(root, Folder):
            raise WrongKindError(page.nodes[0].name, NodeKind.FOLDER, actual=page.nodes[0].kind_raw)
        return root

    # Navigation -------------------------------------------------------

    def get_children(
        self,
        folder: Folder,
        options: ListOptions | None = None,
        cursor: ListCursor | None = None,
    ) -> NodePage:
        return self.list_page(_children_path(folder), options, cursor)

    def get_all_children(self, folder: Folder, options: ListOptions | None = None) -> list[Node]:
        return self.list_all(_children_path(folder), options)

    def get_node(self, folder: Folder, name: str) -> Node:
        """Get the child of ``folder`` called ``name``.

        Raises:
            NodeNotFoundError: If no child has that name.
            AmbiguousNodeError: If more than one child has that name.
        """

        node, _ = self._lookup(folder, name)
        return node

    def get_folder(self, folder: Folder, name: str) -> Folder:
        """Get the sub-folder called ``name``; it is an error if the node is a file."""

        node, _ = self._lookup(folder, name)
        return _expect(node, name, Folder)

    def get_file(self, folder: Folder, name: str) -> File:
        """Get the file called ``name``; it is an error if the node is a folder."""

        node, _ = self._lookup(folder, name)
        return _expect(node, name, File)

    def walk(self, folder: Folder, *names: str) -> WalkResult:
        """Walk the hierarchy below ``folder`` one name at a time.

        Every name but the last must resolve to a folder; the last may be a
        file or a folder. If a step fails, ``WalkError`` reports the furthest
        node reached and the responses of the successful steps.
        """

        current = _require_view(folder, Folder)
        responses: list[Response] = []
        if not names:
            return WalkResult(node=current.node, responses=responses)

        for name in names[:-1]:
            try:
                node, response = self._lookup(current, name)
                current = _expect(node, name, Folder)
            except Exception as exc:
                raise WalkError(node=current.node, responses=responses, error=exc, segment=name) from exc
            responses.append(response)

        last = names[-1]
        try:
            leaf, response = self._lookup(current, last)
        except Exception as exc:
            raise WalkError(node=current.node, responses=responses, error=exc, segment=last) from exc
        responses.append(response)
        self._logger.debug("acd.nodes walk depth=%d leaf=%s", len(names), leaf.id)
        return WalkResult(node=leaf, responses=responses)

    def walk_path(self, folder: Folder, path: str) -> WalkResult:
        """Walk a ``/`` separated path below ``folder``."""

        return self.walk(folder, *split_drive_path(path))

    def resolve_path(self, path: str) -> Node:
        """Resolve an absolute drive path starting at the root folder."""

        root = self.get_root()
        return self.walk_path(root, path).node

    # Metadata and content ---------------------------------------------

    def get_metadata(self, node: Node | File | Folder) -> str:
        """Return the node's full metadata as pretty-printed JSON."""

        node_id = _node_of(node).id
        response = self._http.request_metadata("GET", f"nodes/{node_id}", params={"tempLink": "true"})
        return json.dumps(decode_json(response), indent=4)

    def create_folder(self, parent: Folder, name: str) -> Folder:
        """Create a folder called ``name`` under ``parent``."""

        parent = _require_view(parent, Folder)
        folder_name = normalize_item_name(name)
        response = self._http.request_metadata(
            "POST",
            "nodes",
            json_body={"name": folder_name, "kind": NodeKind.FOLDER.value, "parents": [parent.id]},
            expected_status=(200, 201),
        )
        created = _expect(Node.from_json(decode_json(response)), folder_name, Folder)
        self._logger.info(
            "acd.nodes created_folder parent=%s name=%s folder_id=%s",
            parent.id,
            folder_name,
            created.id,
        )
        return created

    def download(self, file: File, path: str | Path) -> Path:
        """Store the content of ``file`` at ``path``.

        Fails if ``path`` already exists; intermediate directories are not
        created.
        """

        file = _require_view(file, File)
        destination = Path(path).expanduser()
        try:
            handle = destination.open("xb")
        except FileExistsError as exc:
            raise LocalResourceError(f"Destination '{destination}' already exists", path=str(destination)) from exc
        except OSError as exc:
            raise LocalResourceError(f"Cannot open '{destination}': {exc}", path=str(destination)) from exc

        written = 0
        try:
            with handle:
                response = self._http.request_content("GET", f"nodes/{file.id}/content", stream=True)
                with response:
                    for chunk in response.iter_content(chunk_size=self._chunk_size):
                        if chunk:
                            handle.write(chunk)
                            written += len(chunk)
        except Exception:
            # Only ever removes the file this call created.
            destination.unlink(missing_ok=True)
            raise
        self._logger.info(
            "acd.nodes download_finished file_id=%s dest=%s bytes=%d",
            file.id,
            destination,
            written,
        )
        return destination

    def upload(self, folder: Folder, path: str | Path, name: str | None = None) -> File:
        """Store the local file at ``path`` as ``name`` inside ``folder``.

        The multipart body is encoded on a producer thread while the request
        streams it; a producer failure is raised even if the server accepted
        the request.
        """

        folder = _require_view(folder, Folder)
        source = Path(path).expanduser()
        file_name = normalize_item_name(name or source.name)
        if not source.is_file():
            raise LocalResourceError(f"Source '{source}' is not a readable file", path=str(source))
        try:
            handle = source.open("rb")
        except OSError as exc:
            raise LocalResourceError(f"Cannot read '{source}': {exc}", path=str(source)) from exc

        metadata = json.dumps({"name": file_name, "kind": NodeKind.FILE.value, "parents": [folder.id]})
        body = MultipartStream(
            [FormField("metadata", metadata)],
            "content",
            source.name,
            handle,
            content_type=detect_mime_type(source),
            chunk_size=self._chunk_size,
            logger=self._logger,
        )
        try:
            response = self._http.request_content(
                "POST",
                "nodes",
                params={"suppress": "deduplication"},
                headers={"Content-Type": body.content_type},
                data=body.start(),
                expected_status=(200, 201),
            )
        except Exception:
            body.close()
            raise
        body.wait()

        node = Node.from_json(decode_json(response))
        uploaded = classify(node)
        if not isinstance(uploaded, File):
            raise DriveDecodeError("Upload response does not describe a file", payload=dict(node.raw))
        self._logger.info(
            "acd.nodes upload_finished parent=%s name=%s file_id=%s size=%s",
            folder.id,
            file_name,
            uploaded.id,
            uploaded.size,
        )
        return uploaded

    # Internal helpers -------------------------------------------------

    def _lookup(self, folder: Folder, name: str) -> tuple[Node, Response | None]:
        folder = _require_view(folder, Folder)
        filters = join_filters(filter_clause("parents", str(folder.id)), filter_clause("name", name))
        page = self.get_nodes(ListOptions(filters=filters))
        if not page.nodes:
            raise NodeNotFoundError(name, response=page.response)
        if len(page.nodes) > 1:
            raise AmbiguousNodeError(name, len(page.nodes), response=page.response)
        return page.nodes[0], page.response


def _query_params(options: ListOptions | None, cursor: ListCursor) -> dict[str, Any]:
    params: dict[str, Any] = {}
    if options is not None:
        if options.limit:
            params["limit"] = options.limit
        if options.filters:
            params["filters"] = options.filters
        if options.sort:
            params["sort"] = options.sort
    if cursor.token:
        params["startToken"] = cursor.token
    return params


def _children_path(folder: Folder) -> str:
    return f"nodes/{_require_view(folder, Folder).id}/children"


def _expect(node: Node, name: str, view: type) -> Any:
    typed = classify(node)
    if not isinstance(typed, view):
        expected = NodeKind.FOLDER if view is Folder else NodeKind.FILE
        raise WrongKindError(name, expected, actual=node.kind_raw)
    return typed


def _require_view(value: Any, view: type) -> Any:
    if isinstance(value, view):
        return value
    expected = NodeKind.FOLDER if view is Folder else NodeKind.FILE
    node = _node_of(value) if isinstance(value, (Node, File, Folder)) else None
    raise WrongKindError(node.name if node else None, expected, actual=node.kind_raw if node else None)


def _node_of(value: Node | File | Folder) -> Node:
    if isinstance(value, Node):
        return value
    return value.node


__all__ = ["NodesService", "ROOT_FILTER"]
