"""Manifest path helpers."""

import os


def normalize_separators(path: str) -> str:
    """Convert both ``/`` and ``\\`` to the platform separator.

    :param path: Path fragment as written in a manifest.
    :returns: Path fragment using ``os.sep``.
    """

    return path.replace("\\", os.sep).replace("/", os.sep)


def resolve(source_path: str, dest_prefix: str | None) -> tuple[str, str]:
    """Normalize a ``path``/``orgPath`` pair from a file reference.

    The source path only gets its separators normalized. The destination
    prefix is also stripped of surrounding whitespace and separators; an empty
    result means the package root.

    :param source_path: Source file or folder path.
    :param dest_prefix: Destination prefix inside the package.
    :returns: ``(source, dest)`` tuple.
    """

    source: str = normalize_separators(source_path)

    dest: str = ""
    if dest_prefix is not None and dest_prefix.strip() != "":
        dest = normalize_separators(dest_prefix.strip()).strip(os.sep)

    return source, dest
