"""Rewrite the version declaration of a project."""

from __future__ import annotations

import codecs
import logging
import re
from pathlib import Path

from hubpack.config.schema import StampConfig
from hubpack.errors import ErrorKind, PackagerError
from hubpack.workspace.unit import ProjectUnit

logger = logging.getLogger(__name__)

# Build output folders never hold the declaration we want to rewrite
SKIPPED_DIRS = frozenset({"bin", "obj"})


def detect_encoding(data: bytes) -> str:
    """Guess the encoding of a text file from its byte order mark.

    Args:
        data: Raw file content.

    Returns:
        Codec name that round-trips the content, BOM included.
    """
    if data.startswith(codecs.BOM_UTF8):
        return "utf-8-sig"
    # Endian-specific codecs keep the BOM as U+FEFF, so it is written back as-is
    if data.startswith(codecs.BOM_UTF16_LE):
        return "utf-16-le"
    if data.startswith(codecs.BOM_UTF16_BE):
        return "utf-16-be"
    try:
        data.decode("utf-8")
    except UnicodeDecodeError:
        return "latin-1"
    return "utf-8"


class VersionStamper:
    """Write a version into each unit's version-declaration file.

    Attributes:
        file_name: Name of the declaration file.
        pattern: Compiled pattern matching the declaration.
        replacement: Template for the new declaration, with ``{version}``.
    """

    def __init__(self, config: StampConfig | None = None) -> None:
        config = config or StampConfig()
        self.file_name = config.file_name
        self.pattern = re.compile(config.pattern)
        self.replacement = config.replacement

    def locate(self, unit: ProjectUnit) -> Path:
        """Find the declaration file of a unit.

        ``Properties/<file_name>`` is preferred, then the first match of a
        sorted recursive search.

        Raises:
            PackagerError: If the unit has no such file.
        """
        preferred = unit.directory / "Properties" / self.file_name
        if preferred.is_file():
            return preferred

        for candidate in sorted(unit.directory.rglob(self.file_name)):
            relative = candidate.relative_to(unit.directory)
            if SKIPPED_DIRS.isdisjoint(part.lower() for part in relative.parts[:-1]):
                return candidate

        raise PackagerError.expectation_failed(
            f"Project {unit.name} does not contain a document named {self.file_name}."
        )

    def stamp(self, unit: ProjectUnit, version: str) -> Path:
        """Rewrite the version declaration of a unit.

        The file keeps its encoding, byte order mark and line endings.

        Args:
            unit: Unit to stamp.
            version: New version, inserted verbatim.

        Returns:
            Path of the rewritten file.

        Raises:
            PackagerError: If the file is missing or has no declaration.
        """
        path = self.locate(unit)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise PackagerError(ErrorKind.UNEXPECTED, f"Could not read {path}: {e}") from e
        encoding = detect_encoding(data)
        text = data.decode(encoding)

        declaration = self.replacement.format(version=version)
        # A callable replacement keeps backslashes in the version literal
        updated, count = self.pattern.subn(lambda _: declaration, text)
        if count == 0:
            raise PackagerError.expectation_failed(
                f"{path} does not contain a version declaration matching {self.pattern.pattern}."
            )

        try:
            path.write_bytes(updated.encode(encoding))
        except OSError as e:
            raise PackagerError(ErrorKind.UNEXPECTED, f"Could not write {path}: {e}") from e
        logger.info("Updated %s version to %s.", unit.name, version)
        return path
