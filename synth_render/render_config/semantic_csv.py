"""Semantic class CSV export and import.

Each semantic class is written as one line ``Name,R,G,B`` with the color
channels in decimal 0-255. There is no header row and no quoting: the
name is written verbatim, so a name containing a comma produces a line
that older readers split incorrectly. This format is shared with files
exported by earlier versions and is kept as-is.

Decoding splits on the last three commas, so the name is everything
before the color channels.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, NamedTuple, Union

from render_config import config


logger = logging.getLogger(__name__)


class SemanticCsvFileError(OSError):
    """Raised when a semantic class CSV file cannot be written or read.

    ``filename`` holds the offending path.
    """


class SemanticCsvParseError(ValueError):
    """Raised when a CSV line is malformed.

    Attributes:
        line_number: 1-based number of the offending line.
        line: The offending line text.
    """

    def __init__(self, line_number: int, line: str, reason: str) -> None:
        super().__init__(f"Line {line_number}: {reason}: {line!r}")
        self.line_number = line_number
        self.line = line


class Color(NamedTuple):
    r: int
    g: int
    b: int


class SemanticClass(NamedTuple):
    """A named category and the RGB color actors of that class are painted."""

    name: str
    color: Color

    @classmethod
    def create(cls, name: str, r: int, g: int, b: int) -> "SemanticClass":
        return cls(name, Color(r, g, b))


def _check_class(item: SemanticClass) -> None:
    name, color = item
    if not isinstance(name, str) or not name:
        raise ValueError(f"Semantic class name must be a non-empty string, got {name!r}")
    if "\n" in name or "\r" in name:
        raise ValueError(f"Semantic class name must not contain line breaks: {name!r}")
    if len(color) != 3 or not all(
        isinstance(c, int) and not isinstance(c, bool) and 0 <= c <= 255 for c in color
    ):
        raise ValueError(f"Semantic class {name!r} has an invalid color: {tuple(color)!r}")


def encode_lines(classes: Iterable[SemanticClass]) -> list[str]:
    """Return one ``Name,R,G,B`` line per class, in input order.

    Raises:
        ValueError: If a class has an empty or repeated name, a name with a
            line break, or a channel outside 0-255.
    """
    lines: list[str] = []
    seen: set[str] = set()
    for item in classes:
        _check_class(item)
        name, (r, g, b) = item
        if name in seen:
            raise ValueError(f"Duplicate semantic class name: {name!r}")
        seen.add(name)
        lines.append(f"{name},{r},{g},{b}")
    return lines


def decode_lines(lines: Iterable[str]) -> list[SemanticClass]:
    """Parse ``Name,R,G,B`` lines back into semantic classes.

    Blank lines are skipped; line numbers still count them.

    Raises:
        SemanticCsvParseError: On a line without three trailing integer
            channels in 0-255, with an empty name, or repeating a name.
    """
    out: list[SemanticClass] = []
    seen: set[str] = set()

    for line_number, raw in enumerate(lines, start=1):
        line = raw.rstrip("\r\n")
        if not line.strip():
            continue

        parts = line.rsplit(",", 3)
        if len(parts) != 4:
            raise SemanticCsvParseError(line_number, line, "expected Name,R,G,B")

        name = parts[0]
        if not name:
            raise SemanticCsvParseError(line_number, line, "empty class name")
        fields = [p.strip() for p in parts[1:]]
        if not all(f.isascii() and f.isdigit() for f in fields):
            raise SemanticCsvParseError(line_number, line, "color channels must be decimal integers")
        channels = [int(f) for f in fields]
        if not all(0 <= c <= 255 for c in channels):
            raise SemanticCsvParseError(line_number, line, "color channels must be in 0-255")
        if name in seen:
            raise SemanticCsvParseError(line_number, line, f"duplicate class name {name!r}")

        seen.add(name)
        out.append(SemanticClass(name, Color(*channels)))

    return out


def write_lines(lines: Iterable[str], path: Union[str, Path]) -> None:
    """Write ``lines`` to ``path`` in a single write, replacing its content.

    The parent directory must already exist; it is not created.

    Raises:
        SemanticCsvFileError: If the file cannot be opened or written.
    """
    p = Path(path)
    text = "".join(f"{line}\n" for line in lines)
    try:
        with p.open("w", encoding="utf-8", newline="\n") as fh:
            fh.write(text)
    except OSError as e:
        logger.error("Failed while saving the file %s: %s", p, e)
        raise SemanticCsvFileError(e.errno, f"Could not write semantic classes: {e.strerror or e}", str(p)) from e


def read_lines(path: Union[str, Path]) -> list[str]:
    """Return the lines of ``path`` without line terminators."""
    p = Path(path)
    try:
        with p.open("r", encoding="utf-8-sig") as fh:
            return fh.read().splitlines()
    except (OSError, UnicodeDecodeError) as e:
        logger.error("Failed while reading the file %s: %s", p, e)
        errno = getattr(e, "errno", None)
        raise SemanticCsvFileError(errno, f"Could not read semantic classes: {e}", str(p)) from e


def semantic_classes_path(output_dir: Union[str, Path]) -> Path:
    return Path(output_dir) / config.SEMANTIC_CLASSES_FILE_NAME


def export_semantic_classes(output_dir: Union[str, Path], classes: Iterable[SemanticClass]) -> Path:
    """Write ``classes`` to the semantic class CSV inside ``output_dir``.

    Returns:
        Path: The file that was written.
    """
    path = semantic_classes_path(output_dir)
    classes = list(classes)
    write_lines(encode_lines(classes), path)
    logger.info("Exported %d semantic classes to %s", len(classes), path)
    return path


def import_semantic_classes(path: Union[str, Path]) -> list[SemanticClass]:
    """Read and decode a semantic class CSV file."""
    classes = decode_lines(read_lines(path))
    logger.info("Imported %d semantic classes from %s", len(classes), path)
    return classes
