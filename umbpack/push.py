"""Upload a built package archive to our.umbraco.com."""

from dataclasses import dataclass
import json
import logging
import os
import pathlib
import re
import zipfile

import requests

from umbpack.auth import DEFAULT_BASE_URL, ApiKey, signed_headers, split_api_key
from umbpack.errors import (
    AccessDeniedError,
    InputNotFoundError,
    InvalidPackageError,
    InvalidPackageNameError,
    ManifestMalformedError,
    PackageExistsError,
    UploadError,
)
from umbpack.manifest import MANIFEST_FILE_NAME, Manifest

API_KEY_ENV: str = "UMBPACK_API_KEY"
BASE_URL_ENV: str = "UMBPACK_BASE_URL"

_LIST_FILES_PATH: str = "Umbraco/Api/ProjectUpload/GetProjectFiles"
_CURRENT_FILE_PATH: str = "Umbraco/Api/ProjectUpload/GetCurrentPackageFileId"
_ARCHIVE_FILES_PATH: str = "Umbraco/Api/ProjectUpload/ArchiveProjectFiles"
_UPLOAD_PATH: str = "Umbraco/Api/ProjectUpload/UpdatePackage"


@dataclass(frozen=True, slots=True)
class PackageInfo:
    """Name and version read from an archive's ``package.xml``.

    :ivar name: Package name.
    :ivar version: Package version.
    """

    name: str
    version: str


@dataclass(frozen=True, slots=True)
class PushConfig:
    """Push configuration.

    :ivar package_path: Archive to upload.
    :ivar api_key: Parsed API key.
    :ivar is_current: Mark the upload as the project's current file.
    :ivar dotnet_version: .NET version the package targets.
    :ivar works_with: Comma-separated CMS versions (e.g. ``v850,v860``).
    :ivar archive_patterns: Existing files to archive (``current`` or ``*`` wildcards).
    :ivar base_url: Upload service base URL.
    """

    package_path: pathlib.Path
    api_key: ApiKey
    is_current: bool
    dotnet_version: str
    works_with: str
    archive_patterns: tuple[str, ...]
    base_url: str


def parse_current_flag(value: str | None) -> bool:
    """Interpret the ``--current`` option; anything but ``true`` is false."""

    return value is not None and value.strip().lower() == "true"


def resolve_push_config(
    *,
    package_path: pathlib.Path,
    api_key: str | None,
    current: str | None = "true",
    dotnet_version: str = "4.7.2",
    works_with: str = "v850",
    archive_patterns: list[str] | None = None,
    base_url: str | None = None,
) -> PushConfig:
    """Resolve command line values (and environment fallbacks) into a :class:`~PushConfig`.

    :param package_path: Archive to upload.
    :param api_key: API key, or ``None`` to read ``UMBPACK_API_KEY``.
    :param current: ``true``/``false`` current-file flag.
    :param dotnet_version: .NET version string.
    :param works_with: Comma-separated CMS versions.
    :param archive_patterns: Archive patterns.
    :param base_url: Base URL, or ``None`` to read ``UMBPACK_BASE_URL``.
    :returns: Resolved config.
    :raises AccessDeniedError: If no usable API key is available.
    """

    key_text: str = api_key or os.environ.get(API_KEY_ENV, "")
    if key_text.strip() == "":
        raise AccessDeniedError(f"No API key given; pass --key or set {API_KEY_ENV}.")
    try:
        key: ApiKey = split_api_key(key_text)
    except ValueError as exc:
        raise AccessDeniedError(str(exc)) from exc

    return PushConfig(
        package_path=package_path,
        api_key=key,
        is_current=parse_current_flag(current),
        dotnet_version=dotnet_version,
        works_with=works_with,
        archive_patterns=tuple(archive_patterns or ()),
        base_url=base_url or os.environ.get(BASE_URL_ENV, DEFAULT_BASE_URL),
    )


def ensure_package_exists(package_path: pathlib.Path) -> None:
    """Check the archive exists.

    :raises InputNotFoundError: If the archive does not exist.
    """

    if package_path.is_file() is False:
        raise InputNotFoundError(f"Package file not found: {package_path}")


def ensure_is_zip(package_path: pathlib.Path) -> None:
    """Check the archive has a ``.zip`` extension.

    :raises InvalidPackageNameError: If the file name does not end in ``.zip``.
    """

    if package_path.suffix.lower() != ".zip":
        raise InvalidPackageNameError(f"Package file is not a .zip file: {package_path}")


def _find_manifest_entry(names: list[str]) -> str | None:
    candidates: list[str] = [n for n in names if n.rsplit("/", 1)[-1].lower() == MANIFEST_FILE_NAME]
    if len(candidates) == 0:
        return None
    for n in candidates:
        if "/" not in n:
            return n
    return candidates[0]


def ensure_contains_package_xml(package_path: pathlib.Path) -> None:
    """Check the archive is a zip with a ``package.xml`` entry.

    :raises InvalidPackageError: If the archive has no ``package.xml``.
    """

    try:
        with zipfile.ZipFile(package_path) as zf:
            entry: str | None = _find_manifest_entry(zf.namelist())
    except zipfile.BadZipFile as exc:
        raise InvalidPackageError(f"Package file is not a valid zip archive: {package_path}") from exc
    if entry is None:
        raise InvalidPackageError(f"Package file does not contain a {MANIFEST_FILE_NAME}: {package_path}")


def read_package_info(package_path: pathlib.Path) -> PackageInfo:
    """Read the package name and version from an archive.

    :param package_path: Package archive.
    :returns: Package info.
    :raises InvalidPackageError: If ``package.xml`` is missing, malformed or has no ``info/package``.
    """

    with zipfile.ZipFile(package_path) as zf:
        entry: str | None = _find_manifest_entry(zf.namelist())
        if entry is None:
            raise InvalidPackageError(f"Package file does not contain a {MANIFEST_FILE_NAME}: {package_path}")
        data: bytes = zf.read(entry)

    try:
        manifest: Manifest = Manifest.from_text(data, source=f"{package_path}!{entry}")
    except ManifestMalformedError as exc:
        raise InvalidPackageError(str(exc)) from exc

    if manifest.root.find("info/package") is None:
        raise InvalidPackageError(f"{MANIFEST_FILE_NAME} has no umbPackage/info/package node: {package_path}")
    return PackageInfo(name=manifest.name, version=manifest.version)


def ensure_not_already_uploaded(packages: list[dict], package_path: pathlib.Path) -> None:
    """Refuse to upload a file name the project already has.

    :raises PackageExistsError: If a file with the same name is already on the project.
    """

    file_name: str = package_path.name.lower()
    for package in packages:
        if str(package.get("Name", "")).lower() == file_name:
            raise PackageExistsError(f"A package file named {package_path.name} has already been uploaded.")


def _pattern_regex(pattern: str) -> re.Pattern[str]:
    return re.compile("^" + pattern.replace(".", "\\.").replace("*", "(.*)") + "$", re.IGNORECASE)


def select_archive_ids(packages: list[dict], patterns: tuple[str, ...], current_id: str) -> list[int]:
    """Pick the ids of existing files to archive.

    :param packages: Project files as returned by the service (``Id``/``Name``).
    :param patterns: ``current`` or file name patterns with ``*`` wildcards.
    :param current_id: Id of the current file (``"0"`` when there is none).
    :returns: Distinct ids in discovery order.
    """

    ids: list[int] = []
    for pattern in patterns:
        if pattern == "current":
            if current_id.isdigit() is True and int(current_id) != 0:
                ids.append(int(current_id))
            continue
        regex: re.Pattern[str] = _pattern_regex(pattern)
        for package in packages:
            if regex.match(str(package.get("Name", ""))) is not None:
                ids.append(int(package["Id"]))

    distinct: list[int] = []
    for i in ids:
        if i not in distinct:
            distinct.append(i)
    return distinct


def works_with_json(works_with: str) -> str:
    """Encode ``v850,v860`` as the service's version list JSON."""

    versions: list[str] = [v.strip() for v in works_with.split(",") if v.strip() != ""]
    return json.dumps([{"Version": v} for v in versions])


class PushClient:
    """Signed client for the project upload API."""

    def __init__(
        self,
        *,
        base_url: str,
        key: ApiKey,
        session: requests.Session | None = None,
        timeout: float = 60.0,
    ) -> None:
        self.base_url: str = base_url.rstrip("/") + "/"
        self.key: ApiKey = key
        self.session: requests.Session = session if session is not None else requests.Session()
        self.timeout: float = timeout

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url: str = self.base_url + path.lstrip("/")
        try:
            response: requests.Response = self.session.request(
                method,
                url,
                headers=signed_headers(url=url, key=self.key),
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise UploadError(f"Request to {url} failed: {exc}") from exc

        if response.status_code == 401:
            raise AccessDeniedError("API key is invalid.")
        return response

    def get_package_list(self) -> list[dict]:
        """Return the project's existing files (``[]`` if the service returns nothing usable)."""

        response: requests.Response = self._request("GET", _LIST_FILES_PATH)
        if response.ok is False:
            return []
        payload = response.json()
        return payload if isinstance(payload, list) else []

    def get_current_package_file_id(self) -> str:
        """Return the id of the project's current file, ``"0"`` when there is none."""

        response: requests.Response = self._request("GET", _CURRENT_FILE_PATH)
        text: str = response.text.strip().strip('"')
        return text or "0"

    def archive_packages(self, ids: list[int]) -> None:
        """Archive existing project files by id."""

        self._request("POST", _ARCHIVE_FILES_PATH, json=ids)

    def upload_package(
        self,
        package_path: pathlib.Path,
        *,
        is_current: bool,
        dotnet_version: str,
        works_with: str,
        package_version: str,
    ) -> None:
        """Upload a package archive as a multipart form.

        :raises UploadError: If the service does not accept the upload.
        """

        data: dict[str, str] = {
            "isCurrent": "True" if is_current is True else "False",
            "dotNetVersion": dotnet_version,
            "fileType": "package",
            "umbracoVersions": works_with_json(works_with),
            "packageVersion": package_version,
        }
        with open(package_path, "rb") as f:
            response: requests.Response = self._request(
                "POST",
                _UPLOAD_PATH,
                files={"file": (package_path.name, f, "application/zip")},
                data=data,
            )
        if response.ok is False:
            raise UploadError(f"Upload of {package_path.name} failed (HTTP {response.status_code}).")


def push_package(
    config: PushConfig,
    *,
    client: PushClient | None = None,
    logger: logging.Logger | None = None,
) -> PackageInfo:
    """Verify a package archive and upload it.

    :param config: Push configuration.
    :param client: Optional pre-built client.
    :param logger: Optional logger for progress output.
    :returns: Name and version of the uploaded package.
    :raises UmbPackError: If a check or request fails.
    """

    if logger is None:
        logger = logging.getLogger("umbpack")

    package_path: pathlib.Path = config.package_path
    ensure_package_exists(package_path)
    ensure_is_zip(package_path)
    ensure_contains_package_xml(package_path)

    if client is None:
        client = PushClient(base_url=config.base_url, key=config.api_key)

    packages: list[dict] = client.get_package_list()
    current_id: str = client.get_current_package_file_id()
    ensure_not_already_uploaded(packages, package_path)

    ids: list[int] = select_archive_ids(packages, config.archive_patterns, current_id)
    if len(ids) > 0:
        client.archive_packages(ids)
        logger.info(f"umbpack: archived {len(ids)} packages matching the archive pattern")

    info: PackageInfo = read_package_info(package_path)
    logger.info(f"umbpack: package name={info.name} version={info.version}")

    logger.info(f"umbpack: uploading {package_path.name}")
    client.upload_package(
        package_path,
        is_current=config.is_current,
        dotnet_version=config.dotnet_version,
        works_with=config.works_with,
        package_version=info.version,
    )
    logger.info(f"umbpack: {package_path.name} uploaded")
    return info
