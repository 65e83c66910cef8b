"""Package builder.

This module runs the pack pipeline:

- Loads ``package.xml`` (optionally substituting ``$key$`` properties) and
  stamps the version override.
- Copies every ``<file>``/``<folder>`` reference, and in folder mode the whole
  package folder, into a staging directory.
- Flattens the staged tree into a build directory and rewrites the manifest's
  ``files`` section.
- Zips the build directory to ``<name>_<version>.zip``.

Staging and build directories live in one temporary directory inside the
output directory and are removed on every exit path.
"""

from dataclasses import dataclass
import logging
import pathlib
import shutil
import tempfile
import time

from umbpack.archive import build_archive
from umbpack.collector import CopyStats, collect, collect_whole_folder
from umbpack.errors import InputNotFoundError
from umbpack.flattener import flatten
from umbpack.manifest import MANIFEST_FILE_NAME, FileEntry, Manifest, parse_properties

WORK_DIR_PREFIX: str = "__umbpack__"


@dataclass(frozen=True, slots=True)
class PackInput:
    """Resolved pack input.

    :ivar manifest_path: Path to ``package.xml``.
    :ivar package_folder: Package folder when the input was a folder, else ``None``.
    """

    manifest_path: pathlib.Path
    package_folder: pathlib.Path | None


def resolve_input(input_path: pathlib.Path) -> PackInput:
    """Work out the manifest file and package folder from the pack input.

    :param input_path: A manifest file, or a folder containing ``package.xml``.
    :returns: Resolved input.
    :raises InputNotFoundError: If the input or the folder's manifest is missing.
    """

    if input_path.is_dir() is True:
        manifest_path: pathlib.Path = input_path / MANIFEST_FILE_NAME
        if manifest_path.is_file() is False:
            raise InputNotFoundError(f"No {MANIFEST_FILE_NAME} found in folder: {input_path}")
        return PackInput(manifest_path=manifest_path, package_folder=input_path)

    if input_path.is_file() is True:
        return PackInput(manifest_path=input_path, package_folder=None)

    raise InputNotFoundError(f"Input path does not exist: {input_path}")


def package_file_name(name: str, version: str) -> str:
    """Derive the archive file name for a package.

    :param name: Package name (spaces become underscores).
    :param version: Package version.
    :returns: ``<name>_<version>.zip``.
    """

    return f"{name.replace(' ', '_')}_{version}.zip"


def load_manifest(manifest_path: pathlib.Path, properties: str | None) -> Manifest:
    """Load a manifest, substituting properties when any are given.

    :param manifest_path: Path to ``package.xml``.
    :param properties: ``key=value;...`` string, or ``None``.
    :returns: Loaded manifest.
    """

    props: dict[str, str] = parse_properties(properties)
    if len(props) == 0:
        return Manifest.load(manifest_path)
    return Manifest.load_with_substitution(manifest_path, props)


def pack_package(
    *,
    input_path: pathlib.Path,
    output_dir: pathlib.Path = pathlib.Path("."),
    version: str | None = None,
    properties: str | None = None,
    file_name: str | None = None,
    logger: logging.Logger | None = None,
) -> pathlib.Path:
    """Build an Umbraco package archive.

    :param input_path: ``package.xml`` file or a folder containing one.
    :param output_dir: Directory for the archive (created if missing).
    :param version: Optional version override written into the manifest.
    :param properties: Optional ``key=value;...`` string for ``$key$`` substitution.
    :param file_name: Optional archive file name; derived from name and version otherwise.
    :param logger: Optional logger for realtime build progress output.
    :returns: Path of the written archive.
    :raises UmbPackError: If any stage fails. No archive is left behind.
    """

    if logger is None:
        logger = logging.getLogger("umbpack")

    pack_input: PackInput = resolve_input(input_path)

    t_total0: float = time.perf_counter()
    logger.info(f"umbpack: input={input_path}")
    logger.info(f"umbpack: output_dir={output_dir}")

    output_dir.mkdir(parents=True, exist_ok=True)

    with tempfile.TemporaryDirectory(prefix=WORK_DIR_PREFIX, dir=output_dir) as td:
        work_root: pathlib.Path = pathlib.Path(td)
        staging_dir: pathlib.Path = work_root / "staging"
        build_dir: pathlib.Path = work_root / "build"
        staging_dir.mkdir(parents=True, exist_ok=True)
        build_dir.mkdir(parents=True, exist_ok=True)
        if logger.isEnabledFor(logging.DEBUG) is True:
            logger.debug(f"umbpack: work_root={work_root}")

        manifest: Manifest = load_manifest(pack_input.manifest_path, properties)
        package_version: str = manifest.get_or_set_version(version)
        archive_name: str = file_name or package_file_name(manifest.package_name(), package_version)
        output_path: pathlib.Path = output_dir / archive_name
        logger.info(f"umbpack: package={manifest.name} version={package_version}")

        t_stage0: float = time.perf_counter()
        stats: CopyStats = collect(
            manifest,
            staging_dir,
            base_dir=pack_input.manifest_path.parent,
            exclude_paths=[work_root, output_path],
            logger=logger,
        )
        if pack_input.package_folder is not None:
            stats = stats + collect_whole_folder(
                pack_input.package_folder,
                staging_dir,
                exclude_paths=[work_root, output_path, pack_input.manifest_path],
                logger=logger,
            )
        t_stage1: float = time.perf_counter()
        logger.info(
            f"umbpack: staged {stats.files_copied} files ({stats.bytes_copied / 1024:.1f} KiB) "
            f"in {t_stage1 - t_stage0:.2f}s"
        )

        entries: list[FileEntry] = flatten(manifest, staging_dir, build_dir, logger=logger)
        shutil.rmtree(staging_dir)

        written: pathlib.Path | None = build_archive(build_dir, manifest, output_path, logger=logger)
        if written is not None:
            logger.info(f"umbpack: wrote {written} ({len(entries) + 1} entries)")

    t_total1: float = time.perf_counter()
    logger.info(f"umbpack: done in {t_total1 - t_total0:.2f}s")
    return output_path
