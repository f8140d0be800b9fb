"""Output writer: persist migrated files under an output directory.

Responsibilities:
  1. Resolve each ``migratedFilename`` under the output directory.
     Path traversal (../../etc/passwd) or absolute names → hard fail.
  2. Overwrite protection: existing files are left alone unless asked.
  3. Write every file atomically (temp file → rename).
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from codeshift.generate.orchestrator import TranslationResult


# ------------------------------------------------------------------
# Path validation
# ------------------------------------------------------------------


def resolve_output_path(filename: str, output_dir: Path) -> Path:
    """Resolve *filename* inside *output_dir*.

    Raises:
        ValueError: If the name is absolute or escapes *output_dir*.
    """
    base = output_dir.resolve()
    if not filename or Path(filename).is_absolute():
        raise ValueError(f"Output filename {filename!r} must be a relative path.")

    resolved = (base / filename).resolve()
    try:
        resolved.relative_to(base)
    except ValueError:
        raise ValueError(
            f"Output filename '{filename}' resolves outside the output directory "
            f"('{base}'). Path traversal is not permitted."
        ) from None
    if resolved == base:
        raise ValueError(f"Output filename {filename!r} names the output directory itself.")
    return resolved


# ------------------------------------------------------------------
# Atomic write
# ------------------------------------------------------------------


def write_file(path: Path, content: str) -> None:
    """Write *content* to *path* atomically (temp → rename).

    Creates parent directories if needed.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def write_outputs(
    result: TranslationResult,
    output_dir: Path,
    *,
    overwrite: bool = False,
) -> list[Path]:
    """Write every file of *result* under *output_dir*.

    All target paths are validated before anything is written, so a bad
    name or an existing file leaves the directory untouched.

    Returns:
        The written paths, in result order.

    Raises:
        ValueError: A filename escapes *output_dir*.
        FileExistsError: A target exists and *overwrite* is False.
    """
    planned: list[tuple[Path, str]] = []
    for file in result.files:
        path = resolve_output_path(file.migrated_filename, output_dir)
        if path.exists() and not overwrite:
            raise FileExistsError(
                f"{path} already exists. Pass overwrite=True (--force) to replace it."
            )
        planned.append((path, file.content))

    for path, content in planned:
        write_file(path, content)
    return [path for path, _ in planned]
