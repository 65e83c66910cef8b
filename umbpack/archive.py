"""Write the flattened build directory to the output ``.zip``."""

import logging
import os
import pathlib
import shutil
import zipfile

from umbpack.errors import ArchiveWriteError
from umbpack.manifest import MANIFEST_FILE_NAME, Manifest


def _zip_dir_to_path(*, root: pathlib.Path, out_path: pathlib.Path) -> None:
    """Zip a directory tree to a zip file on disk.

    :param root: Root directory to archive.
    :param out_path: Output zip path.
    """

    with zipfile.ZipFile(out_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        paths: list[pathlib.Path] = []
        for p in root.rglob("*"):
            if p.is_file() is True:
                paths.append(p)
        for p in sorted(paths):
            arcname: str = str(p.relative_to(root)).replace(os.sep, "/")
            zf.write(p, arcname=arcname)


def build_archive(
    build_dir: pathlib.Path,
    manifest: Manifest,
    output_path: pathlib.Path,
    *,
    logger: logging.Logger | None = None,
) -> pathlib.Path | None:
    """Save the manifest into ``build_dir`` and zip the directory to ``output_path``.

    An existing file at ``output_path`` is replaced. ``build_dir`` is removed
    once the archive is written. A missing ``build_dir`` is logged and nothing
    is written.

    :param build_dir: Flat build directory.
    :param manifest: Final manifest.
    :param output_path: Archive path.
    :param logger: Optional logger for progress output.
    :returns: ``output_path``, or ``None`` if there was nothing to archive.
    :raises ArchiveWriteError: If the archive cannot be written.
    """

    if logger is None:
        logger = logging.getLogger("umbpack")

    if build_dir.is_dir() is False:
        logger.warning(f"umbpack: build directory {build_dir} does not exist; no package written")
        return None

    try:
        manifest.save(build_dir / MANIFEST_FILE_NAME)
    except OSError as exc:
        raise ArchiveWriteError(f"Could not write {MANIFEST_FILE_NAME} to {build_dir}: {exc}") from exc

    try:
        if output_path.exists() is True:
            output_path.unlink()
        output_path.parent.mkdir(parents=True, exist_ok=True)
        _zip_dir_to_path(root=build_dir, out_path=output_path)
    except OSError as exc:
        if output_path.is_file() is True:
            output_path.unlink()
        raise ArchiveWriteError(f"Could not write package file {output_path}: {exc}") from exc

    shutil.rmtree(build_dir)
    return output_path
