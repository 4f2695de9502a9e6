"""Amazon Cloud Drive service integration."""

from .cli import app as acd_app
from .client import CloudDriveClient
from .models import File, Folder, ListCursor, ListOptions, Node, NodeKind, classify

__all__ = [
    "CloudDriveClient",
    "File",
    "Folder",
    "ListCursor",
    "ListOptions",
    "Node",
    "NodeKind",
    "acd_app",
    "classify",
]
