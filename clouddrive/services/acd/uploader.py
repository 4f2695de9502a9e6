"""Streaming multipart body for Cloud Drive uploads."""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import BinaryIO, Iterator

from urllib3.fields import RequestField
from urllib3.filepost import choose_boundary

from clouddrive.core.logger import get_logger

LOGGER = get_logger()

DEFAULT_QUEUE_SIZE = 4
_EOF = object()


@dataclass(slots=True)
class FormField:
    """A plain text form field written before the file part."""

    name: str
    value: str
    content_type: str | None = None


class MultipartStream:
    """Encode a multipart/form-data body on a producer thread.

    The encoded bytes pass through a bounded queue so encoding and
    transmission overlap and the whole payload is never held in memory.
    Iterate the instance (e.g. pass it as ``data=`` to requests) to consume
    the body, then call :meth:`wait` to surface any producer-side failure.
    """

    def __init__(
        self,
        fields: list[FormField],
        file_field: str,
        filename: str,
        source: BinaryIO,
        *,
        content_type: str = "application/octet-stream",
        chunk_size: int = 64 * 1024,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        logger: logging.Logger | None = None,
    ) -> None:
        self._fields = fields
        self._file_field = file_field
        self._filename = filename
        self._source = source
        self._file_content_type = content_type
        self._chunk_size = chunk_size
        self._logger = logger or LOGGER
        self._boundary = choose_boundary()
        self._chunks: queue.Queue[object] = queue.Queue(maxsize=max(1, queue_size))
        self._done: queue.Queue[BaseException | None] = queue.Queue(maxsize=1)
        self._abort = threading.Event()
        self._thread = threading.Thread(target=self._produce, name="clouddrive-multipart", daemon=True)
        self._started = False

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={self._boundary}"

    def start(self) -> "MultipartStream":
        if not self._started:
            self._started = True
            self._thread.start()
        return self

    def __iter__(self) -> Iterator[bytes]:
        self.start()
        while True:
            chunk = self._chunks.get()
            if chunk is _EOF:
                return
            yield chunk  # type: ignore[misc]

    def wait(self, timeout: float | None = None) -> None:
        """Block until the producer finishes and re-raise its error, if any."""

        try:
            error = self._done.get(timeout=timeout)
        except queue.Empty as exc:
            raise TimeoutError("Multipart producer did not finish in time") from exc
        if error is not None:
            raise error

    def close(self) -> None:
        """Stop the producer early, e.g. when the request failed."""

        self._abort.set()
        if self._started:
            self._thread.join(timeout=5)
        else:
            self._source.close()

    # Internal helpers -------------------------------------------------

    def _produce(self) -> None:
        error: BaseException | None = None
        try:
            for field in self._fields:
                part = RequestField(name=field.name, data=field.value)
                part.make_multipart(content_type=field.content_type)
                self._put(self._part_header(part))
                self._put(field.value.encode("utf-8") + b"\r\n")

            part = RequestField(name=self._file_field, data=b"", filename=self._filename)
            part.make_multipart(content_type=self._file_content_type)
            self._put(self._part_header(part))
            while True:
                block = self._source.read(self._chunk_size)
                if not block:
                    break
                self._put(block)
            self._put(b"\r\n")
            self._put(f"--{self._boundary}--\r\n".encode("latin-1"))
        except _Aborted:
            self._logger.debug("acd.uploader producer aborted filename=%s", self._filename)
        except Exception as exc:  # noqa: BLE001 - delivered to the waiting caller
            self._logger.warning("acd.uploader producer_failed filename=%s error=%s", self._filename, exc)
            error = exc
        finally:
            self._source.close()
            self._done.put(error)
            try:
                self._put(_EOF)
            except _Aborted:
                pass

    def _part_header(self, part: RequestField) -> bytes:
        return f"--{self._boundary}\r\n".encode("latin-1") + part.render_headers().encode("utf-8")

    def _put(self, chunk: object) -> None:
        while True:
            if self._abort.is_set():
                raise _Aborted()
            try:
                self._chunks.put(chunk, timeout=0.1)
                return
            except queue.Full:
                continue


class _Aborted(Exception):
    pass


__all__ = ["MultipartStream", "FormField"]
