"""Interactive ``package.xml`` wizard.

Works like ``npm init``: asks a few questions, guesses sensible defaults, shows
the result and writes ``package.xml`` after confirmation.
"""

from dataclasses import dataclass
import getpass
import pathlib
import re
from typing import Callable
import xml.etree.ElementTree as ET

from umbpack.errors import InputNotFoundError
from umbpack.manifest import MANIFEST_FILE_NAME, Manifest

_VERSION_RE: re.Pattern[str] = re.compile(
    r"^(?P<major>\d+)(?:\.(?P<minor>\d+))?(?:\.(?P<patch>\d+))?(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?$"
)

_LICENSE_URLS: dict[str, str] = {
    "mit": "https://opensource.org/licenses/MIT",
}

_EMPTY_SECTIONS: tuple[str, ...] = (
    "files",
    "Actions",
    "control",
    "DocumentTypes",
    "Templates",
    "Stylesheets",
    "Macros",
    "DictionaryItems",
    "Languages",
    "DataTypes",
)


@dataclass(frozen=True, slots=True)
class Version:
    """A parsed semantic version.

    :ivar major: Major number.
    :ivar minor: Minor number.
    :ivar patch: Patch number.
    :ivar text: Version as entered.
    """

    major: int
    minor: int
    patch: int
    text: str


@dataclass(frozen=True, slots=True)
class PackageSetup:
    """Answers collected by the wizard."""

    name: str
    description: str
    version: Version
    url: str
    cms_version: Version
    author: str
    website: str
    license: str
    contributors: str | None


def parse_version(text: str) -> Version | None:
    """Parse ``major[.minor[.patch]][-pre][+build]``; ``None`` if invalid."""

    m = _VERSION_RE.match(text.strip())
    if m is None:
        return None
    return Version(
        major=int(m.group("major")),
        minor=int(m.group("minor") or 0),
        patch=int(m.group("patch") or 0),
        text=text.strip(),
    )


def license_url(license_name: str) -> str:
    return _LICENSE_URLS.get(license_name.strip().lower(), "")


def package_file_path(folder: str | None) -> pathlib.Path:
    """Work out where ``package.xml`` should be written.

    :param folder: Folder argument, a file path with an extension, or ``None``.
    :returns: Manifest file path.
    :raises InputNotFoundError: If the target folder does not exist.
    """

    file_path: pathlib.Path = pathlib.Path(".") / MANIFEST_FILE_NAME
    if folder is not None and folder.strip() != "":
        candidate: pathlib.Path = pathlib.Path(folder)
        file_path = candidate if candidate.suffix != "" else candidate / MANIFEST_FILE_NAME

    if file_path.parent.is_dir() is False:
        raise InputNotFoundError(f"Folder does not exist: {file_path.parent}")
    return file_path


def build_manifest(setup: PackageSetup) -> Manifest:
    """Make a new manifest from the wizard answers.

    :param setup: Wizard answers.
    :returns: Manifest with an ``info`` block and empty standard sections.
    """

    root: ET.Element = ET.Element("umbPackage")
    info: ET.Element = ET.SubElement(root, "info")

    package: ET.Element = ET.SubElement(info, "package")
    ET.SubElement(package, "name").text = setup.name
    ET.SubElement(package, "version").text = setup.version.text
    ET.SubElement(package, "iconUrl").text = ""
    ET.SubElement(package, "license", url=license_url(setup.license)).text = setup.license
    ET.SubElement(package, "url").text = setup.url
    requirements: ET.Element = ET.SubElement(package, "requirements", type="strict")
    ET.SubElement(requirements, "major").text = str(setup.cms_version.major)
    ET.SubElement(requirements, "minor").text = str(setup.cms_version.minor)
    ET.SubElement(requirements, "patch").text = str(setup.cms_version.patch)

    author: ET.Element = ET.SubElement(info, "author")
    ET.SubElement(author, "name").text = setup.author
    ET.SubElement(author, "website").text = setup.website

    contributors: list[str] = []
    if setup.contributors is not None:
        contributors = [c.strip() for c in setup.contributors.split(",") if c.strip() != ""]
    if len(contributors) > 0:
        node: ET.Element = ET.SubElement(info, "contributors")
        for c in contributors:
            ET.SubElement(node, "contributor").text = c

    ET.SubElement(info, "readme").text = setup.description

    for section in _EMPTY_SECTIONS:
        ET.SubElement(root, section)

    return Manifest(root)


class Wizard:
    """Prompt-driven collection of :class:`~PackageSetup` answers."""

    def __init__(
        self,
        *,
        input_fn: Callable[[str], str] = input,
        print_fn: Callable[[str], None] = print,
    ) -> None:
        self.input_fn: Callable[[str], str] = input_fn
        self.print_fn: Callable[[str], None] = print_fn

    def ask(self, prompt: str, default: str | None) -> str | None:
        """Prompt once; blank answers return ``default``."""

        label: str = f"{prompt}: "
        if default is not None and default.strip() != "":
            label += f"({default}) "
        value: str = self.input_fn(label)
        if value.strip() == "":
            return default
        return value.strip()

    def ask_version(self, prompt: str, default: str) -> Version:
        """Prompt until the answer parses as a version."""

        while True:
            answer: str = self.ask(prompt, default) or ""
            version: Version | None = parse_version(answer)
            if version is not None:
                return version
            self.print_fn(f"{answer!r} is not a valid version (e.g. 1.0.0)")

    def collect(self, *, default_name: str) -> PackageSetup:
        """Ask every question and return the answers."""

        return PackageSetup(
            name=self.ask("Package name", default_name) or default_name,
            description=self.ask("Description", "Umbraco Package") or "",
            version=self.ask_version("Version", "1.0.0"),
            url=self.ask("Url", "http://our.umbraco.com") or "",
            cms_version=self.ask_version("Umbraco version", "8.0.0"),
            author=self.ask("Author", _default_author()) or "",
            website=self.ask("Website", "http://our.umbraco.com") or "",
            license=self.ask("License", "MIT") or "",
            contributors=self.ask("Contributors (comma separated)", None),
        )


def _default_author() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return ""


def run_init(
    folder: str | None,
    *,
    input_fn: Callable[[str], str] = input,
    print_fn: Callable[[str], None] = print,
) -> pathlib.Path | None:
    """Run the wizard and write ``package.xml``.

    :param folder: Target folder (or file path), ``None`` for the current directory.
    :param input_fn: Prompt function.
    :param print_fn: Output function.
    :returns: The written path, or ``None`` if the user declined.
    :raises InputNotFoundError: If the target folder does not exist.
    """

    package_file: pathlib.Path = package_file_path(folder)
    current_folder: pathlib.Path = package_file.parent.resolve()

    wizard: Wizard = Wizard(input_fn=input_fn, print_fn=print_fn)
    print_fn("umbpack init: answer a few questions to create a package.xml")
    print_fn("")
    setup: PackageSetup = wizard.collect(default_name=current_folder.name)

    manifest: Manifest = build_manifest(setup)
    print_fn("")
    print_fn(f"About to write {package_file}:")
    info: ET.Element | None = manifest.root.find("info")
    if info is None:
        raise AssertionError("unreachable")
    ET.indent(info, space="  ")
    print_fn(ET.tostring(info, encoding="unicode"))

    confirm: str = wizard.ask("Is this OK?", "Y") or ""
    if confirm.upper().startswith("Y") is False:
        return None

    manifest.save(package_file)
    print_fn(f"Wrote {package_file}")
    return package_file
