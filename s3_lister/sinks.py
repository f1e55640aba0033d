from __future__ import annotations
"""Consumers for discovered object keys."""
import json
import logging
from pathlib import Path
import queue
import sys
import threading
from typing import IO

from .models import TreeNode

LOGGER = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 1000
_PUT_TIMEOUT = 0.5
_STOP = object()


class KeyWriterError(RuntimeError):
    """Raised when keys are handed to a writer whose thread has stopped."""


class KeyFileWriter:
    """Writes keys to a text file, one per line, from a background thread.

    Producers call :meth:`put`; the bounded queue blocks them whenever the
    writer falls behind.
    """

    def __init__(self, path: str | Path, *, queue_size: int = DEFAULT_QUEUE_SIZE):
        self._path = str(path)
        self._queue: queue.Queue = queue.Queue(maxsize=max(int(queue_size), 1))
        self._thread: threading.Thread | None = None
        self._stream: IO[str] | None = None
        self.written = 0

    def __enter__(self) -> KeyFileWriter:
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def start(self) -> None:
        if self._thread is not None:
            return
        if self._path == "-":
            self._stream = sys.stdout
        else:
            target = Path(self._path)
            target.parent.mkdir(parents=True, exist_ok=True)
            self._stream = target.open("w", encoding="utf-8")
        self._thread = threading.Thread(target=self._drain, name="key-writer", daemon=True)
        self._thread.start()

    def put(self, key: str) -> None:
        """Queue ``key`` for writing.

        Raises:
            KeyWriterError: when the writer thread is not running.
        """

        self._enqueue(key)

    def _enqueue(self, item) -> None:
        while True:
            thread = self._thread
            if thread is None or not thread.is_alive():
                raise KeyWriterError(f"Key writer for {self._path} is not running")
            try:
                self._queue.put(item, timeout=_PUT_TIMEOUT)
                return
            except queue.Full:
                continue

    def close(self) -> None:
        if self._thread is None:
            return
        if self._thread.is_alive():
            try:
                self._enqueue(_STOP)
            except KeyWriterError:
                LOGGER.error("Key writer for %s stopped early", self._path)
        self._thread.join()
        self._thread = None
        if self._stream is not None and self._stream is not sys.stdout:
            self._stream.close()
        self._stream = None
        LOGGER.info("Wrote %d key(s) to %s", self.written, self._path)

    def _drain(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                break
            try:
                self._stream.write(f"{item}\n")
                self._stream.flush()
            except (OSError, ValueError) as exc:
                # UnicodeEncodeError is a ValueError: the stream cannot hold this key.
                LOGGER.error("Unable to write key %r to %s: %s", item, self._path, exc)
                continue
            self.written += 1


class TreeBuilder:
    """Collects ``(bucket, key)`` pairs and renders them as directory trees."""

    def __init__(self, delimiter: str = "/"):
        self._delimiter = delimiter
        self._lock = threading.Lock()
        self._keys: dict[str, set[str]] = {}

    def add(self, bucket_name: str, key: str) -> None:
        with self._lock:
            self._keys.setdefault(bucket_name, set()).add(key)

    def to_nodes(self) -> list[TreeNode]:
        with self._lock:
            snapshot = {bucket: sorted(keys) for bucket, keys in self._keys.items()}
        return [self._build(bucket, keys) for bucket, keys in sorted(snapshot.items())]

    def _build(self, bucket_name: str, keys: list[str]) -> TreeNode:
        root = TreeNode(name=bucket_name, is_dir=True)
        for key in keys:
            parts = [part for part in key.split(self._delimiter) if part]
            if not parts:
                continue
            node = root
            path = ""
            for part in parts[:-1]:
                path += part + self._delimiter
                node = self._child_dir(node, part, path)
            node.children.append(TreeNode(name=parts[-1], is_dir=False, full_path=key))
        self._sort(root)
        return root

    @staticmethod
    def _child_dir(node: TreeNode, name: str, path: str) -> TreeNode:
        for child in node.children:
            if child.is_dir and child.name == name:
                return child
        child = TreeNode(name=name, is_dir=True, full_path=path)
        node.children.append(child)
        return child

    def _sort(self, node: TreeNode) -> None:
        node.children.sort(key=lambda child: (not child.is_dir, child.name))
        for child in node.children:
            if child.is_dir:
                self._sort(child)

    def render_text(self) -> str:
        lines: list[str] = []
        for root in self.to_nodes():
            _render(root, "", True, lines)
        return "\n".join(lines) + ("\n" if lines else "")

    def to_json(self) -> str:
        return json.dumps([root.to_dict() for root in self.to_nodes()], indent=2)

    def write_text(self, path: str | Path) -> None:
        Path(path).write_text(self.render_text(), encoding="utf-8")

    def write_json(self, path: str | Path) -> None:
        Path(path).write_text(self.to_json(), encoding="utf-8")


def _render(node: TreeNode, indent: str, is_last: bool, lines: list[str]) -> None:
    connector = "└── " if is_last else "├── "
    lines.append(indent + connector + node.name + ("/" if node.is_dir else ""))
    child_indent = indent + ("    " if is_last else "│   ")
    for index, child in enumerate(node.children):
        _render(child, child_indent, index == len(node.children) - 1, lines)
