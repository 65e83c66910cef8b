"""Error types and process exit codes."""

import enum


class ErrorCode(enum.IntEnum):
    """Process exit codes.

    Numbering follows the Windows system error codes so results stay stable
    across platforms and match what CI scripts already expect.
    """

    SUCCESS = 0
    INVALID_FUNCTION = 1
    FILE_NOT_FOUND = 2
    ACCESS_DENIED = 5
    WRITE_FAULT = 29
    FILE_EXISTS = 80
    INVALID_NAME = 123
    BAD_FILE_TYPE = 222


class UmbPackError(RuntimeError):
    """Base class for failures that abort a pack or push."""

    exit_code: ErrorCode = ErrorCode.INVALID_FUNCTION


class InputNotFoundError(UmbPackError):
    """Raised when the input manifest, folder or package file does not exist."""

    exit_code = ErrorCode.FILE_NOT_FOUND


class ManifestMalformedError(UmbPackError):
    """Raised when a manifest is not well-formed XML."""

    exit_code = ErrorCode.BAD_FILE_TYPE


class PackageNameMissingError(UmbPackError):
    """Raised when a manifest has no ``info/package/name``."""

    exit_code = ErrorCode.BAD_FILE_TYPE


class SourceNotFoundError(UmbPackError):
    """Raised when a ``<file>`` or ``<folder>`` reference points nowhere."""

    exit_code = ErrorCode.FILE_NOT_FOUND


class StagingWriteError(UmbPackError):
    """Raised when a file cannot be copied into the staging or build directory."""

    exit_code = ErrorCode.WRITE_FAULT


class ArchiveWriteError(UmbPackError):
    """Raised when the output archive cannot be written."""

    exit_code = ErrorCode.WRITE_FAULT


class InvalidPackageNameError(UmbPackError):
    """Raised when a package to push is not a ``.zip`` file."""

    exit_code = ErrorCode.INVALID_NAME


class InvalidPackageError(UmbPackError):
    """Raised when a package archive has no usable ``package.xml``."""

    exit_code = ErrorCode.BAD_FILE_TYPE


class AccessDeniedError(UmbPackError):
    """Raised when the upload service rejects the API key."""

    exit_code = ErrorCode.ACCESS_DENIED


class PackageExistsError(UmbPackError):
    """Raised when a file with the same name was already uploaded."""

    exit_code = ErrorCode.FILE_EXISTS


class UploadError(UmbPackError):
    """Raised when the upload service fails for any other reason."""
