"""Command line interface for umbpack."""

import argparse
import logging
import pathlib
import sys

from umbpack.builder import pack_package
from umbpack.errors import ErrorCode, UmbPackError
from umbpack.init import run_init
from umbpack.push import PushConfig, push_package, resolve_push_config


def _configure_logging(*, verbose: int, quiet: int) -> logging.Logger:
    """Configure the umbpack logger.

    :param verbose: Verbosity count (0+).
    :param quiet: Quietness count (0+).
    :returns: Configured logger.
    """

    level: int = logging.INFO
    if quiet >= 2:
        level = logging.ERROR
    elif quiet >= 1:
        level = logging.WARNING
    elif verbose >= 1:
        level = logging.DEBUG

    logger: logging.Logger = logging.getLogger("umbpack")
    logger.setLevel(level)
    logger.propagate = False

    handler: logging.Handler = logging.StreamHandler(stream=sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger.handlers.clear()
    logger.addHandler(handler)
    return logger


def _add_logging_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "-V",
        "--verbose",
        action="count",
        default=0,
        help="Enable verbose logging. Pass multiple times for more detail.",
    )
    p.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Reduce logging. Pass multiple times to suppress more output.",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser.

    :returns: Parser with ``pack``, ``push`` and ``init`` sub-commands.
    """

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="umbpack",
        description="Create Umbraco packages from a package.xml and upload them to our.umbraco.com.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_pack = subparsers.add_parser(
        "pack",
        help="Create an Umbraco package from a folder or package.xml file.",
    )
    p_pack.add_argument(
        "input",
        type=pathlib.Path,
        help="package.xml file, or a folder containing one.",
    )
    p_pack.add_argument(
        "-o",
        "--output-directory",
        type=pathlib.Path,
        default=pathlib.Path("."),
        help="Directory for the created package. Defaults to the current directory.",
    )
    p_pack.add_argument(
        "-v",
        "--version",
        type=str,
        default=None,
        help="Override the version defined in package.xml.",
    )
    p_pack.add_argument(
        "-p",
        "--properties",
        type=str,
        default=None,
        help="Properties replacing $key$ tokens in package.xml, as 'key=value;key2=value2'.",
    )
    p_pack.add_argument(
        "-n",
        "--package-file-name",
        type=str,
        default=None,
        help="Name of the package file. Defaults to '<name>_<version>.zip'.",
    )
    _add_logging_flags(p_pack)

    p_push = subparsers.add_parser(
        "push",
        help="Upload a package archive to our.umbraco.com.",
    )
    p_push.add_argument(
        "package",
        type=pathlib.Path,
        help="Package .zip file to upload.",
    )
    p_push.add_argument(
        "-k",
        "--key",
        type=str,
        default=None,
        help="API key for the project (falls back to UMBPACK_API_KEY).",
    )
    p_push.add_argument(
        "-c",
        "--current",
        type=str,
        default="true",
        help="Mark the upload as the current package file (true/false).",
    )
    p_push.add_argument(
        "--dotnet-version",
        type=str,
        default="4.7.2",
        help=".NET version the package targets.",
    )
    p_push.add_argument(
        "-w",
        "--works-with",
        type=str,
        default="v850",
        help="Comma-separated Umbraco versions the package works with (e.g. v850,v860).",
    )
    p_push.add_argument(
        "-a",
        "--archive",
        nargs="+",
        default=None,
        help="Archive existing files before uploading: 'current' or name patterns with '*'.",
    )
    p_push.add_argument(
        "--base-url",
        type=str,
        default=None,
        help="Upload service base URL (falls back to UMBPACK_BASE_URL, then our.umbraco.com).",
    )
    _add_logging_flags(p_push)

    p_init = subparsers.add_parser(
        "init",
        help="Create a package.xml by answering a few questions.",
    )
    p_init.add_argument(
        "folder",
        nargs="?",
        default=None,
        help="Folder to create package.xml in. Defaults to the current directory.",
    )
    _add_logging_flags(p_init)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the umbpack CLI.

    :param argv: Optional argv list (excluding program name).
    :returns: Exit code.
    """

    ns = build_parser().parse_args(argv)
    logger: logging.Logger = _configure_logging(verbose=ns.verbose, quiet=ns.quiet)

    try:
        if ns.command == "pack":
            pack_package(
                input_path=ns.input,
                output_dir=ns.output_directory,
                version=ns.version,
                properties=ns.properties,
                file_name=ns.package_file_name,
                logger=logger,
            )
            return ErrorCode.SUCCESS

        if ns.command == "push":
            config: PushConfig = resolve_push_config(
                package_path=ns.package,
                api_key=ns.key,
                current=ns.current,
                dotnet_version=ns.dotnet_version,
                works_with=ns.works_with,
                archive_patterns=ns.archive,
                base_url=ns.base_url,
            )
            push_package(config, logger=logger)
            return ErrorCode.SUCCESS

        if ns.command == "init":
            written: pathlib.Path | None = run_init(ns.folder)
            if written is None:
                return ErrorCode.INVALID_FUNCTION
            return ErrorCode.SUCCESS
    except UmbPackError as exc:
        logger.error(f"umbpack: {exc}")
        return exc.exit_code

    raise AssertionError(f"Unhandled command: {ns.command}")


def main_entry() -> None:
    """Console script entry point."""

    sys.exit(int(main()))
