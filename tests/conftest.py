from __future__ import annotations

import faulthandler
import os
import sys
import tempfile
import threading
import traceback
from pathlib import Path
from types import FrameType
from typing import Dict, Iterator

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

faulthandler.enable()  # Ensure crashes emit tracebacks.

# Keep log files and config lookups out of the project workspace.
os.environ["CLOUDDRIVE_ROOT"] = tempfile.mkdtemp(prefix="clouddrive-tests-")

ACD_ENV_VARS = (
    "ACD_CLIENT_ID",
    "ACD_CLIENT_SECRET",
    "ACD_REFRESH_TOKEN",
    "ACD_METADATA_URL",
    "ACD_CONTENT_URL",
    "ACD_TIMEOUT_SEC",
    "ACD_CHUNK_SIZE",
    "ACD_RETRY_ATTEMPTS",
    "ACD_RETRY_BACKOFF_MS",
    "ACD_RETRY_MAX_BACKOFF_MS",
)


def _snapshot_thread_stacks() -> Dict[int, str]:
    frames: Dict[int, FrameType] = sys._current_frames()  # type: ignore[attr-defined]
    stacks: Dict[int, str] = {}
    for ident, frame in frames.items():
        stacks[ident] = "".join(traceback.format_stack(frame))
    return stacks


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Hide any real Cloud Drive credentials from the test run."""

    for key in ACD_ENV_VARS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True, scope="session")
def _thread_diagnostics() -> Iterator[None]:
    """Dump live upload producer threads at the end of the test session."""

    yield

    stacks = _snapshot_thread_stacks()
    lingering: list[threading.Thread] = []
    for thread in threading.enumerate():
        if thread is threading.current_thread() or not thread.name.startswith("clouddrive-"):
            continue
        thread.join(timeout=2)
        if thread.is_alive():
            lingering.append(thread)

    if lingering:
        print("\n[pytest] lingering threads detected:", file=sys.stderr)
        for thread in lingering:
            stack = stacks.get(thread.ident, "<no stack>\n")
            print(
                f"- Thread {thread.name} (ident={thread.ident}) still alive after tests", file=sys.stderr
            )
            print(stack, file=sys.stderr)
