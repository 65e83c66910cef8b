"""Copy package sources into the staging directory."""

from dataclasses import dataclass
import logging
import os
import pathlib
import shutil
import zipfile

from umbpack.errors import SourceNotFoundError, StagingWriteError
from umbpack.manifest import MANIFEST_FILE_NAME, FileReference, Manifest
from umbpack.paths import resolve


@dataclass(frozen=True, slots=True)
class CopyStats:
    """Stats collected while copying into the staging directory.

    :ivar files_copied: Number of files copied.
    :ivar bytes_copied: Total bytes copied (best-effort).
    """

    files_copied: int
    bytes_copied: int

    def __add__(self, other: "CopyStats") -> "CopyStats":
        return CopyStats(
            files_copied=self.files_copied + other.files_copied,
            bytes_copied=self.bytes_copied + other.bytes_copied,
        )


_NO_FILES: CopyStats = CopyStats(files_copied=0, bytes_copied=0)


def collect(
    manifest: Manifest,
    staging_dir: pathlib.Path,
    *,
    base_dir: pathlib.Path,
    exclude_paths: list[pathlib.Path] | None = None,
    logger: logging.Logger | None = None,
) -> CopyStats:
    """Copy every ``<file>``/``<folder>`` reference of ``manifest`` into staging.

    References are processed in document order. Relative source paths are
    resolved against ``base_dir``. References with a blank ``path`` are skipped.
    Folder references never copy ``exclude_paths`` or earlier package archives.

    :param manifest: Loaded manifest.
    :param staging_dir: Staging directory root.
    :param base_dir: Directory relative source paths are resolved against.
    :param exclude_paths: Paths folder references leave out (output archive,
        working directory).
    :param logger: Optional logger for progress output.
    :returns: Copy statistics.
    :raises SourceNotFoundError: If a referenced file or folder does not exist.
    :raises StagingWriteError: If a file cannot be copied.
    """

    if logger is None:
        logger = logging.getLogger("umbpack")

    stats: CopyStats = _NO_FILES
    for ref in manifest.file_references():
        if ref.source_path.strip() == "":
            logger.debug(f"umbpack: skipping {ref.kind} reference with empty path")
            continue
        stats = stats + _collect_reference(
            ref=ref,
            staging_dir=staging_dir,
            base_dir=base_dir,
            exclude_paths=exclude_paths or [],
            logger=logger,
        )
    return stats


def _relative_excludes(root: pathlib.Path, exclude_paths: list[pathlib.Path]) -> set[str]:
    """Turn exclude paths into POSIX paths relative to ``root``.

    Paths outside ``root`` (and ``root`` itself) are dropped.
    """

    root_resolved: pathlib.Path = root.resolve()
    relpaths: set[str] = set()
    for p in exclude_paths:
        p_resolved: pathlib.Path = p.resolve()
        if p_resolved.is_relative_to(root_resolved) is True and p_resolved != root_resolved:
            relpaths.add(p_resolved.relative_to(root_resolved).as_posix())
    return relpaths


def _collect_reference(
    *,
    ref: FileReference,
    staging_dir: pathlib.Path,
    base_dir: pathlib.Path,
    exclude_paths: list[pathlib.Path],
    logger: logging.Logger,
) -> CopyStats:
    """Copy a single file or folder reference.

    :param ref: File reference.
    :param staging_dir: Staging directory root.
    :param base_dir: Directory relative source paths are resolved against.
    :param exclude_paths: Paths a folder copy leaves out.
    :param logger: Logger for progress output.
    :returns: Copy statistics.
    :raises SourceNotFoundError: If the source does not exist.
    """

    source, dest = resolve(ref.source_path, ref.dest_prefix)
    src_path: pathlib.Path = pathlib.Path(source)
    if src_path.is_absolute() is False:
        src_path = base_dir / src_path

    dest_root: pathlib.Path = staging_dir / dest if dest != "" else staging_dir

    if ref.kind == "folder":
        if src_path.is_dir() is False:
            raise SourceNotFoundError(f"Folder referenced in manifest does not exist: {src_path}")
        logger.debug(f"umbpack: collecting folder {src_path} -> {dest or '.'}")
        return _copy_tree(
            src=src_path,
            dst=dest_root,
            exclude_relpaths=_relative_excludes(src_path, exclude_paths),
            overwrite=True,
            skip_package_archives=True,
        )

    if src_path.is_file() is False:
        raise SourceNotFoundError(f"File referenced in manifest does not exist: {src_path}")
    logger.debug(f"umbpack: collecting file {src_path} -> {dest or '.'}")
    size: int = _copy_file(src=src_path, dst=dest_root / src_path.name)
    return CopyStats(files_copied=1, bytes_copied=size)


def collect_whole_folder(
    source_folder: pathlib.Path,
    staging_dir: pathlib.Path,
    *,
    exclude_paths: list[pathlib.Path] | None = None,
    logger: logging.Logger | None = None,
) -> CopyStats:
    """Copy a whole package folder into the staging root.

    Files that are already staged (from manifest references) are kept, so
    manifest-declared placements win over the plain folder copy.

    :param source_folder: Package source folder.
    :param staging_dir: Staging directory root.
    :param exclude_paths: Paths inside ``source_folder`` to leave out (output
        archive, working directory).
    :param logger: Optional logger for progress output.
    :returns: Copy statistics.
    :raises SourceNotFoundError: If ``source_folder`` is not a directory.
    """

    if logger is None:
        logger = logging.getLogger("umbpack")

    if source_folder.is_dir() is False:
        raise SourceNotFoundError(f"Package folder does not exist: {source_folder}")

    exclude_relpaths: set[str] = _relative_excludes(source_folder, exclude_paths or [])
    if len(exclude_relpaths) > 0:
        logger.debug(f"umbpack: folder copy excludes={sorted(exclude_relpaths)}")

    return _copy_tree(
        src=source_folder,
        dst=staging_dir,
        exclude_relpaths=exclude_relpaths,
        overwrite=False,
        skip_package_archives=True,
    )


def looks_like_package_archive(path: pathlib.Path) -> bool:
    """Check if a file appears to be a previously built package archive.

    This prevents re-packing earlier outputs that sit in the package folder.

    :param path: Candidate file path.
    :returns: ``True`` if it is a zip with a root-level ``package.xml``.
    """

    if path.suffix.lower() != ".zip":
        return False

    try:
        with zipfile.ZipFile(path) as zf:
            names: list[str] = zf.namelist()
    except (OSError, zipfile.BadZipFile):
        return False

    return any(n.lower() == MANIFEST_FILE_NAME for n in names)


def _copy_file(*, src: pathlib.Path, dst: pathlib.Path) -> int:
    """Copy one file, creating parent directories.

    :param src: Source file.
    :param dst: Destination file.
    :returns: Bytes copied (best-effort).
    :raises StagingWriteError: If the file cannot be copied.
    """

    try:
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dst)
    except OSError as exc:
        raise StagingWriteError(f"Could not copy {src} to {dst}: {exc}") from exc
    try:
        return src.stat().st_size
    except OSError:
        return 0


def _copy_tree(
    *,
    src: pathlib.Path,
    dst: pathlib.Path,
    exclude_relpaths: set[str],
    overwrite: bool,
    skip_package_archives: bool = False,
) -> CopyStats:
    """Copy every file under ``src`` to ``dst``, preserving relative paths.

    Directories without files produce nothing in ``dst``.

    :param src: Source directory.
    :param dst: Destination directory.
    :param exclude_relpaths: Relative paths within ``src`` (POSIX) to skip.
    :param overwrite: Replace files that already exist in ``dst``.
    :param skip_package_archives: Leave out previously built package archives.
    :returns: Copy statistics.
    """

    exclude_parts: list[tuple[str, ...]] = []
    for relpath in sorted(exclude_relpaths):
        exclude_parts.append(pathlib.PurePosixPath(relpath).parts)

    def is_excluded(relpath: pathlib.PurePosixPath) -> bool:
        rel_tuple: tuple[str, ...] = relpath.parts
        for ex in exclude_parts:
            if len(rel_tuple) >= len(ex) and rel_tuple[0 : len(ex)] == ex:
                return True
        return False

    files_copied: int = 0
    bytes_copied: int = 0

    for root_str, dirs, files in os.walk(src, topdown=True):
        root_path: pathlib.Path = pathlib.Path(root_str)
        rel_root: pathlib.Path = root_path.relative_to(src)
        rel_root_posix: pathlib.PurePosixPath = pathlib.PurePosixPath(rel_root.as_posix())

        dirs[:] = sorted(d for d in dirs if is_excluded(rel_root_posix / d) is False)

        for name in sorted(files):
            if is_excluded(rel_root_posix / name) is True:
                continue
            if skip_package_archives is True and looks_like_package_archive(root_path / name) is True:
                continue

            dest_path: pathlib.Path = dst / rel_root / name
            if overwrite is False and dest_path.exists() is True:
                continue
            bytes_copied += _copy_file(src=root_path / name, dst=dest_path)
            files_copied += 1

    return CopyStats(files_copied=files_copied, bytes_copied=bytes_copied)
