import pytest

from umbpack.errors import InputNotFoundError
from umbpack.init import PackageSetup, build_manifest, package_file_path, parse_version, run_init
from umbpack.manifest import Manifest


def _answers(*values: str):
    it = iter(values)
    return lambda _prompt: next(it)


def test_parse_version():
    v = parse_version("8.6.1")
    assert (v.major, v.minor, v.patch) == (8, 6, 1)
    assert parse_version("8").minor == 0
    assert parse_version("1.0.0-beta.1").text == "1.0.0-beta.1"
    assert parse_version("abc") is None


def test_package_file_path(tmp_path):
    assert package_file_path(str(tmp_path)) == tmp_path / "package.xml"
    assert package_file_path(str(tmp_path / "custom.xml")) == tmp_path / "custom.xml"
    with pytest.raises(InputNotFoundError):
        package_file_path(str(tmp_path / "missing" / "dir"))


def test_build_manifest():
    setup = PackageSetup(
        name="Demo",
        description="A demo",
        version=parse_version("1.0.0"),
        url="https://example.com",
        cms_version=parse_version("8.5.2"),
        author="Jane",
        website="https://jane.example",
        license="MIT",
        contributors="Ann, Bob,",
    )
    manifest: Manifest = build_manifest(setup)
    root = manifest.root
    assert manifest.package_name() == "Demo"
    assert root.find("info/package/license").get("url") == "https://opensource.org/licenses/MIT"
    assert root.find("info/package/requirements").get("type") == "strict"
    assert root.findtext("info/package/requirements/minor") == "5"
    assert [c.text for c in root.findall("info/contributors/contributor")] == ["Ann", "Bob"]
    assert root.find("files") is not None
    assert root.find("DataTypes") is not None


def test_run_init_writes_manifest(tmp_path):
    printed: list[str] = []
    written = run_init(
        str(tmp_path),
        input_fn=_answers("My Pkg", "", "not-a-version", "2.0.0", "", "", "Jane", "", "Apache-2.0", "", "y"),
        print_fn=printed.append,
    )

    assert written == tmp_path / "package.xml"
    manifest = Manifest.load(written)
    assert manifest.name == "My Pkg"
    assert manifest.version == "2.0.0"
    assert manifest.root.find("info/package/license").get("url") == ""
    assert manifest.root.find("info/contributors") is None
    assert any("not a valid version" in line for line in printed)


def test_run_init_declined(tmp_path):
    written = run_init(str(tmp_path), input_fn=_answers(*([""] * 9), "n"), print_fn=lambda _line: None)
    assert written is None
    assert (tmp_path / "package.xml").exists() is False
