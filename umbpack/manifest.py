"""Package manifest (``package.xml``) model.

The manifest is kept as an :mod:`xml.etree.ElementTree` tree so that every
section umbpack does not understand (actions, document types, macros, ...) is
written back untouched. Only ``info/package`` and ``files`` are interpreted.

Before a build the ``files`` section holds author-written references::

    <file path="bin/My.dll" orgPath="bin" />
    <folder path="App_Plugins/My" orgPath="App_Plugins/My" />

After a build it holds one entry per file in the archive::

    <file><guid>My.dll</guid><orgPath>bin</orgPath><orgName>My.dll</orgName></file>
"""

import codecs
from dataclasses import dataclass
import pathlib
import re
from xml.sax.saxutils import escape
import xml.etree.ElementTree as ET

from umbpack.errors import InputNotFoundError, ManifestMalformedError, PackageNameMissingError

MANIFEST_FILE_NAME: str = "package.xml"

_REFERENCE_TAGS: tuple[str, ...] = ("file", "folder")
_ESCAPE_ENTITIES: dict[str, str] = {'"': "&quot;", "'": "&apos;"}
_DECLARATION_RE: re.Pattern[bytes] = re.compile(
    rb"""^\s*<\?xml[^>]*?\bencoding\s*=\s*["'](?P<encoding>[A-Za-z][A-Za-z0-9._-]*)["']"""
)


@dataclass(frozen=True, slots=True)
class FileReference:
    """Author-declared file or folder to copy into the package.

    :ivar kind: Either ``file`` or ``folder``.
    :ivar source_path: Source path as written in the ``path`` attribute.
    :ivar dest_prefix: Destination prefix from the ``orgPath`` attribute.
    """

    kind: str
    source_path: str
    dest_prefix: str


@dataclass(frozen=True, slots=True)
class FileEntry:
    """Build-generated record mapping an archive file back to its origin.

    :ivar identifier: File name inside the archive (unique per build).
    :ivar original_relative_dir: Original directory, ``/``-separated, ``""`` for root.
    :ivar original_name: Original file name.
    """

    identifier: str
    original_relative_dir: str
    original_name: str


def parse_properties(properties: str | None) -> dict[str, str]:
    """Parse a ``key=value;key2=value2`` properties string.

    Segments without ``=`` are ignored. Values may contain ``=``.

    :param properties: Properties string (may be ``None`` or empty).
    :returns: Mapping of property name to value.
    """

    result: dict[str, str] = {}
    if properties is None:
        return result

    for segment in properties.split(";"):
        if "=" not in segment:
            continue
        key, value = segment.split("=", 1)
        key = key.strip()
        if key == "":
            continue
        result[key] = value
    return result


def substitute_properties(text: str, properties: dict[str, str]) -> str:
    """Replace every ``$key$`` token in ``text``.

    Values are XML-escaped so they are safe in both element text and
    attribute values. Tokens with no matching property are left alone.

    :param text: Raw manifest text.
    :param properties: Property values keyed by name.
    :returns: Substituted text.
    """

    for key, value in properties.items():
        text = text.replace(f"${key}$", escape(value, _ESCAPE_ENTITIES))
    return text


def declared_encoding(data: bytes) -> str:
    """Return the encoding a manifest's bytes are written in.

    :param data: Raw manifest bytes.
    :returns: ``utf-8-sig`` for a BOM, the XML declaration's encoding, else ``utf-8``.
    """

    if data.startswith(codecs.BOM_UTF8) is True:
        return "utf-8-sig"
    m = _DECLARATION_RE.match(data)
    if m is None:
        return "utf-8"
    return m.group("encoding").decode("ascii")


def decode_manifest(data: bytes, *, source: str = "<bytes>") -> str:
    """Decode raw manifest bytes using their declared encoding.

    :param data: Raw manifest bytes.
    :param source: Where the bytes came from, for error messages.
    :returns: Manifest text.
    :raises ManifestMalformedError: If the encoding is unknown or the bytes do not decode.
    """

    encoding: str = declared_encoding(data)
    try:
        return data.decode(encoding)
    except LookupError as exc:
        raise ManifestMalformedError(f"Manifest declares an unknown encoding {encoding!r}: {source}") from exc
    except UnicodeDecodeError as exc:
        raise ManifestMalformedError(f"Manifest is not valid {encoding} ({exc}): {source}") from exc


class Manifest:
    """In-memory ``package.xml`` document."""

    def __init__(self, root: ET.Element) -> None:
        self.root: ET.Element = root

    @classmethod
    def load(cls, path: pathlib.Path) -> "Manifest":
        """Load a manifest from disk.

        :param path: Manifest file path.
        :returns: Parsed manifest.
        :raises InputNotFoundError: If the file does not exist.
        :raises ManifestMalformedError: If the file is not well-formed XML.
        """

        if path.is_file() is False:
            raise InputNotFoundError(f"Manifest file not found: {path}")
        return cls.from_text(path.read_bytes(), source=str(path))

    @classmethod
    def load_with_substitution(cls, path: pathlib.Path, properties: dict[str, str]) -> "Manifest":
        """Load a manifest, replacing ``$key$`` tokens before parsing.

        :param path: Manifest file path.
        :param properties: Property values keyed by name.
        :returns: Parsed manifest.
        :raises InputNotFoundError: If the file does not exist.
        :raises ManifestMalformedError: If the file cannot be decoded or the
            substituted text is not well-formed XML.
        """

        if path.is_file() is False:
            raise InputNotFoundError(f"Manifest file not found: {path}")
        text: str = decode_manifest(path.read_bytes(), source=str(path))
        return cls.from_text(substitute_properties(text, properties), source=str(path))

    @classmethod
    def from_text(cls, text: str | bytes, *, source: str = "<string>") -> "Manifest":
        """Parse manifest XML, keeping comments and processing instructions.

        Bytes are decoded by the XML parser, honoring the encoding declaration.

        :param text: XML document text or raw bytes.
        :param source: Where the text came from, for error messages.
        :returns: Parsed manifest.
        :raises ManifestMalformedError: If the text is not well-formed XML.
        """

        parser: ET.XMLParser = ET.XMLParser(
            target=ET.TreeBuilder(insert_comments=True, insert_pis=True)
        )
        try:
            root: ET.Element = ET.fromstring(text, parser=parser)
        except ET.ParseError as exc:
            raise ManifestMalformedError(f"Manifest is not well-formed XML ({exc}): {source}") from exc
        except (LookupError, ValueError) as exc:
            raise ManifestMalformedError(f"Manifest encoding is not supported ({exc}): {source}") from exc
        return cls(root)

    def _package_node(self) -> ET.Element | None:
        return self.root.find("info/package")

    def _ensure_package_node(self) -> ET.Element:
        info: ET.Element | None = self.root.find("info")
        if info is None:
            info = ET.SubElement(self.root, "info")

        package: ET.Element | None = info.find("package")
        if package is None:
            package = ET.Element("package")
            info.insert(0, package)
        return package

    def _files_node(self) -> ET.Element:
        files: ET.Element | None = self.root.find("files")
        if files is None:
            files = ET.SubElement(self.root, "files")
        return files

    @property
    def name(self) -> str:
        """Package name, or ``""`` when missing."""

        package: ET.Element | None = self._package_node()
        if package is None:
            return ""
        return (package.findtext("name") or "").strip()

    def package_name(self) -> str:
        """Return the package name needed to derive an archive file name.

        :returns: Package name.
        :raises PackageNameMissingError: If ``info/package/name`` is absent or blank.
        """

        name: str = self.name
        if name == "":
            raise PackageNameMissingError("Manifest has no info/package/name; cannot name the package file.")
        return name

    @property
    def version(self) -> str:
        """Package version, or ``""`` when missing."""

        package: ET.Element | None = self._package_node()
        if package is None:
            return ""
        return (package.findtext("version") or "").strip()

    def get_or_set_version(self, override: str | None = None) -> str:
        """Stamp a version override, or read the current version.

        :param override: Version to write into ``info/package/version``.
        :returns: The override if one was given, otherwise the existing version.
        """

        if override is None or override.strip() == "":
            return self.version

        package: ET.Element = self._ensure_package_node()
        version_node: ET.Element | None = package.find("version")
        if version_node is None:
            version_node = ET.Element("version")
            children: list[ET.Element] = list(package)
            index: int = len(children)
            for i, child in enumerate(children):
                if child.tag == "name":
                    index = i + 1
                    break
            package.insert(index, version_node)
        version_node.text = override
        return override

    def file_references(self) -> list[FileReference]:
        """Return the author-declared ``<file>``/``<folder>`` references in document order."""

        files: ET.Element | None = self.root.find("files")
        if files is None:
            return []

        refs: list[FileReference] = []
        for child in files:
            if child.tag not in _REFERENCE_TAGS:
                continue
            source_path: str | None = child.get("path")
            if source_path is None:
                continue
            refs.append(
                FileReference(
                    kind=str(child.tag),
                    source_path=source_path,
                    dest_prefix=child.get("orgPath", ""),
                )
            )
        return refs

    def file_entries(self) -> list[FileEntry]:
        """Return the build-generated file entries in document order."""

        files: ET.Element | None = self.root.find("files")
        if files is None:
            return []

        entries: list[FileEntry] = []
        for child in files.findall("file"):
            identifier: str | None = child.findtext("guid")
            if identifier is None:
                continue
            entries.append(
                FileEntry(
                    identifier=identifier,
                    original_relative_dir=child.findtext("orgPath") or "",
                    original_name=child.findtext("orgName") or "",
                )
            )
        return entries

    def clear_files_section(self) -> None:
        """Remove every file reference and file entry, keeping the ``files`` node."""

        files: ET.Element = self._files_node()
        for child in list(files):
            if child.tag in _REFERENCE_TAGS:
                files.remove(child)

    def add_file_entry(self, identifier: str, original_relative_dir: str, original_name: str) -> FileEntry:
        """Append one file entry to the ``files`` section.

        :param identifier: File name inside the archive.
        :param original_relative_dir: Original directory (``/``-separated).
        :param original_name: Original file name.
        :returns: The recorded entry.
        """

        node: ET.Element = ET.SubElement(self._files_node(), "file")
        ET.SubElement(node, "guid").text = identifier
        ET.SubElement(node, "orgPath").text = original_relative_dir
        ET.SubElement(node, "orgName").text = original_name
        return FileEntry(
            identifier=identifier,
            original_relative_dir=original_relative_dir,
            original_name=original_name,
        )

    def to_bytes(self) -> bytes:
        """Serialize the manifest as indented UTF-8 XML with a declaration."""

        tree: ET.ElementTree = ET.ElementTree(self.root)
        ET.indent(tree, space="  ")
        # CDATA sections (e.g. the readme) come back as escaped text with the same content.
        return ET.tostring(self.root, encoding="utf-8", xml_declaration=True) + b"\n"

    def save(self, path: pathlib.Path) -> None:
        """Write the manifest to ``path``, replacing any existing file.

        :param path: Destination file path.
        """

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.to_bytes())
