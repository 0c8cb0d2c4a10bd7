"""Serializes target groups to a Prometheus file_sd JSON document and writes it atomically."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Sequence
from pathlib import Path

from ..config import OutputConfig
from ..discovery.models import TargetGroup
from ..exceptions import EncodingError, WriteError

logger = logging.getLogger(__name__)


class DocumentEncoder:
    """Renders ``[{"targets": [...], "labels": {...}}, ...]`` in group creation order."""

    def __init__(self, config: OutputConfig):
        self._path = Path(config.path)
        self._mode = config.mode

    @property
    def path(self) -> Path:
        return self._path

    @staticmethod
    def encode(groups: Sequence[TargetGroup]) -> str:
        try:
            return json.dumps([g.to_dict() for g in groups], indent="\t") + "\n"
        except (TypeError, ValueError) as exc:
            raise EncodingError(f"Cannot encode target groups: {exc}") from exc

    @staticmethod
    def decode(document: str) -> list[TargetGroup]:
        try:
            raw = json.loads(document)
        except ValueError as exc:
            raise EncodingError(f"Cannot decode target groups: {exc}") from exc
        if not isinstance(raw, list):
            raise EncodingError("A file_sd document must be a JSON array")
        groups = []
        for index, entry in enumerate(raw):
            if not isinstance(entry, dict):
                raise EncodingError(f"Target group {index} must be a JSON object")
            groups.append(TargetGroup(entry.get("labels", {}), entry.get("targets", [])))
        return groups

    def write(self, groups: Sequence[TargetGroup]) -> Path:
        """Replace the output file with the encoded groups.

        The document is written to a temporary file in the same directory and renamed
        into place, so readers never see a partial file.
        """
        document = self.encode(groups)
        directory = self._path.parent
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self._path.name}.", suffix=".tmp", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(document)
            os.chmod(tmp_name, self._mode)
            os.replace(tmp_name, self._path)
        except OSError as exc:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise WriteError(f"Cannot write {self._path}: {exc}", path=str(self._path)) from exc

        logger.info(
            "Wrote %d target groups to %s", len(groups), self._path,
            extra={"groups": len(groups), "output_path": str(self._path)},
        )
        return self._path
