"""Flat-directory JSONL store for conversation logs."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import structlog

from lethe.errors import LogNotFoundError, MalformedRecordError
from lethe.models.record import Record, dump_records, parse_records


class RecordStore:
    """
    Reads and writes logs stored as ``<root>/<log_id>.jsonl``.

    Writes are atomic: the full sequence goes to a temporary file in the same
    directory, which then replaces the target. A reader never observes a
    partially written log.

    Usage::

        store = RecordStore("~/.claude/projects/my-project")
        records = store.read("0f9e...")
        store.write("7a1c...", records)
    """

    SUFFIX = ".jsonl"

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).expanduser()
        self._logger = structlog.get_logger("lethe.store.records")

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, log_id: str) -> Path:
        return self._root / f"{log_id}{self.SUFFIX}"

    def exists(self, log_id: str) -> bool:
        return self.path_for(log_id).is_file()

    def read(self, log_id: str) -> list[Record]:
        """
        Parse every record of a log.

        Raises:
            LogNotFoundError: If ``<root>/<log_id>.jsonl`` does not exist.
            MalformedRecordError: If a line is not a valid record.
        """
        path = self.path_for(log_id)
        try:
            raw = path.read_bytes()
        except FileNotFoundError as exc:
            raise LogNotFoundError(log_id) from exc
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            line_number = raw.count(b"\n", 0, exc.start) + 1
            raise MalformedRecordError(line_number, "invalid UTF-8") from exc
        records = parse_records(text)
        self._logger.debug("log_read", log_id=log_id, records=len(records))
        return records

    def write(self, log_id: str, records: list[Record]) -> Path:
        """
        Atomically write ``records`` as ``<root>/<log_id>.jsonl``.

        Returns:
            The path of the written log.
        """
        self._root.mkdir(parents=True, exist_ok=True)
        path = self.path_for(log_id)
        fd, tmp_name = tempfile.mkstemp(dir=self._root, prefix=f".{log_id}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(dump_records(records))
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        self._logger.debug("log_written", log_id=log_id, records=len(records), path=str(path))
        return path
