"""Flatten the staged package tree into the build directory.

Umbraco packages store every file at the archive root. The original location
of each file is kept in the manifest ``files`` section, and the installer uses
it to put the file back where it belongs. Files are assigned names in sorted
relative-path order; the first file with a given name keeps it and later ones
get a ``<uuid>_`` prefix.
"""

import logging
import pathlib
import shutil
import uuid

from umbpack.errors import StagingWriteError
from umbpack.manifest import MANIFEST_FILE_NAME, FileEntry, Manifest


def discover_files(staging_dir: pathlib.Path) -> list[pathlib.Path]:
    """List every staged file except manifests, sorted by relative path.

    :param staging_dir: Staging directory root.
    :returns: File paths under ``staging_dir``.
    """

    found: list[tuple[str, pathlib.Path]] = []
    for p in staging_dir.rglob("*"):
        if p.is_file() is False:
            continue
        if p.name.lower() == MANIFEST_FILE_NAME:
            continue
        found.append((p.relative_to(staging_dir).as_posix(), p))
    found.sort(key=lambda item: item[0])
    return [p for _rel, p in found]


def _unique_identifier(name: str, taken: set[str]) -> str:
    """Pick an archive file name for ``name`` that is not in ``taken``.

    :param name: Original file name.
    :param taken: Case-folded identifiers already used in this build.
    :returns: ``name`` itself, or ``<uuid4>_<name>`` if it is already used.
    """

    if name.casefold() not in taken:
        return name

    while True:
        candidate: str = f"{uuid.uuid4()}_{name}"
        if candidate.casefold() not in taken:
            return candidate


def flatten(
    manifest: Manifest,
    staging_dir: pathlib.Path,
    build_dir: pathlib.Path,
    *,
    logger: logging.Logger | None = None,
) -> list[FileEntry]:
    """Copy staged files flat into ``build_dir`` and rewrite the ``files`` section.

    :param manifest: Manifest whose ``files`` section is replaced.
    :param staging_dir: Staging directory root.
    :param build_dir: Build directory (created if missing).
    :param logger: Optional logger for progress output.
    :returns: File entries in the order they were written.
    :raises StagingWriteError: If a file cannot be copied.
    """

    if logger is None:
        logger = logging.getLogger("umbpack")

    manifest.clear_files_section()
    build_dir.mkdir(parents=True, exist_ok=True)

    taken: set[str] = set()
    entries: list[FileEntry] = []
    for src in discover_files(staging_dir):
        rel_dir: str = src.parent.relative_to(staging_dir).as_posix()
        if rel_dir == ".":
            rel_dir = ""

        identifier: str = _unique_identifier(src.name, taken)
        if identifier != src.name:
            logger.debug(f"umbpack: name clash for {rel_dir}/{src.name}; stored as {identifier}")
        taken.add(identifier.casefold())

        try:
            shutil.copy2(src, build_dir / identifier)
        except OSError as exc:
            raise StagingWriteError(f"Could not copy {src} into {build_dir}: {exc}") from exc
        entries.append(manifest.add_file_entry(identifier, rel_dir, src.name))

    logger.info(f"umbpack: flattened {len(entries)} files")
    return entries
