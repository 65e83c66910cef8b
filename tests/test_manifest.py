import codecs
import pathlib

import pytest

from conftest import write_manifest
from umbpack.errors import InputNotFoundError, ManifestMalformedError, PackageNameMissingError
from umbpack.manifest import FileEntry, FileReference, Manifest, parse_properties, substitute_properties

LATIN1_MANIFEST: str = (
    '<?xml version="1.0" encoding="iso-8859-1"?>\n'
    "<umbPackage><info><package><name>Café</name><version>$ver$</version></package></info></umbPackage>\n"
)


def test_load_missing_file(tmp_path):
    with pytest.raises(InputNotFoundError):
        Manifest.load(tmp_path / "package.xml")


def test_load_malformed_file(tmp_path):
    path: pathlib.Path = tmp_path / "package.xml"
    path.write_text("<umbPackage><info></umbPackage>", encoding="utf-8")
    with pytest.raises(ManifestMalformedError):
        Manifest.load(path)


def test_load_honors_declared_encoding(tmp_path):
    path: pathlib.Path = tmp_path / "package.xml"
    path.write_bytes(LATIN1_MANIFEST.encode("iso-8859-1"))

    assert Manifest.load(path).name == "Café"

    manifest = Manifest.load_with_substitution(path, {"ver": "1.0"})
    assert manifest.name == "Café"
    assert manifest.version == "1.0"


def test_load_accepts_utf8_bom(tmp_path):
    path: pathlib.Path = tmp_path / "package.xml"
    path.write_bytes(codecs.BOM_UTF8 + "<umbPackage><info><package><name>Café</name></package></info></umbPackage>".encode("utf-8"))

    assert Manifest.load(path).name == "Café"
    assert Manifest.load_with_substitution(path, {"ver": "1.0"}).name == "Café"


def test_undecodable_manifest_is_malformed(tmp_path):
    path: pathlib.Path = tmp_path / "package.xml"
    path.write_bytes(b'<?xml version="1.0" encoding="utf-8"?><umbPackage><info><package><name>\xff</name></package></info></umbPackage>')

    with pytest.raises(ManifestMalformedError):
        Manifest.load(path)
    with pytest.raises(ManifestMalformedError):
        Manifest.load_with_substitution(path, {"ver": "1.0"})


def test_unknown_declared_encoding_is_malformed(tmp_path):
    path: pathlib.Path = tmp_path / "package.xml"
    path.write_bytes(b'<?xml version="1.0" encoding="no-such-codec"?><umbPackage />')

    with pytest.raises(ManifestMalformedError):
        Manifest.load_with_substitution(path, {"ver": "1.0"})


def test_name_and_version(tmp_path):
    manifest = Manifest.load(write_manifest(tmp_path / "package.xml", name="My Package", version="1.2.3"))
    assert manifest.package_name() == "My Package"
    assert manifest.version == "1.2.3"


def test_package_name_missing(tmp_path):
    manifest = Manifest.load(write_manifest(tmp_path / "package.xml", name=None))
    with pytest.raises(PackageNameMissingError):
        manifest.package_name()


def test_parse_properties():
    assert parse_properties("ver=3.1.4;name=Demo") == {"ver": "3.1.4", "name": "Demo"}
    assert parse_properties("a=b=c;;junk; k =v") == {"a": "b=c", "k": "v"}
    assert parse_properties(None) == {}
    assert parse_properties("") == {}


def test_substitution_leaves_unknown_tokens():
    text = substitute_properties("<a>$ver$ $other$</a>", {"ver": "1.0"})
    assert text == "<a>1.0 $other$</a>"


def test_load_with_substitution_reads_substituted_version(tmp_path):
    path = write_manifest(tmp_path / "package.xml", version="$ver$")
    manifest = Manifest.load_with_substitution(path, parse_properties("ver=3.1.4"))
    assert manifest.version == "3.1.4"
    assert manifest.get_or_set_version() == "3.1.4"


def test_substituted_values_are_escaped(tmp_path):
    path = write_manifest(tmp_path / "package.xml", name="$name$", files='<file path="$src$" orgPath="bin" />')
    manifest = Manifest.load_with_substitution(path, {"name": "A & <B>", "src": 'say "hi".txt'})
    assert manifest.name == "A & <B>"
    assert manifest.file_references()[0].source_path == 'say "hi".txt'


def test_get_or_set_version_creates_node_after_name(tmp_path):
    manifest = Manifest.load(write_manifest(tmp_path / "package.xml"))
    assert manifest.get_or_set_version() == ""

    assert manifest.get_or_set_version("2.0.0") == "2.0.0"
    package = manifest.root.find("info/package")
    assert [child.tag for child in package][:2] == ["name", "version"]

    before: bytes = manifest.to_bytes()
    manifest.get_or_set_version("2.0.0")
    assert manifest.to_bytes() == before
    assert manifest.get_or_set_version(None) == "2.0.0"


def test_get_or_set_version_without_info_block():
    manifest = Manifest.from_text("<umbPackage><files /></umbPackage>")
    assert manifest.get_or_set_version("1.0.0") == "1.0.0"
    assert manifest.root.findtext("info/package/version") == "1.0.0"


def test_file_references_in_document_order(tmp_path):
    files = (
        '<folder path="App_Plugins/Demo" orgPath="App_Plugins/Demo" />'
        '<file path="bin/Demo.dll" orgPath="bin" />'
        '<file path="readme.txt" />'
    )
    manifest = Manifest.load(write_manifest(tmp_path / "package.xml", files=files))
    assert manifest.file_references() == [
        FileReference(kind="folder", source_path="App_Plugins/Demo", dest_prefix="App_Plugins/Demo"),
        FileReference(kind="file", source_path="bin/Demo.dll", dest_prefix="bin"),
        FileReference(kind="file", source_path="readme.txt", dest_prefix=""),
    ]


def test_clear_and_add_file_entries(tmp_path):
    files = '<file path="a.txt" orgPath="" /><!-- keep me -->'
    manifest = Manifest.load(write_manifest(tmp_path / "package.xml", files=files))

    manifest.clear_files_section()
    assert manifest.file_references() == []
    assert manifest.root.find("files") is not None

    manifest.add_file_entry("Demo.dll", "bin", "Demo.dll")
    manifest.add_file_entry("x_Demo.dll", "bin/other", "Demo.dll")
    assert manifest.file_entries() == [
        FileEntry(identifier="Demo.dll", original_relative_dir="bin", original_name="Demo.dll"),
        FileEntry(identifier="x_Demo.dll", original_relative_dir="bin/other", original_name="Demo.dll"),
    ]
    assert manifest.file_references() == []


def test_save_round_trips_pass_through_sections(tmp_path):
    manifest = Manifest.load(write_manifest(tmp_path / "package.xml", version="1.0"))
    manifest.add_file_entry("a.txt", "", "a.txt")
    out: pathlib.Path = tmp_path / "out" / "package.xml"
    manifest.save(out)

    reloaded = Manifest.load(out)
    assert reloaded.version == "1.0"
    assert reloaded.root.findtext("info/readme") == "Hello <b>world</b>"
    assert reloaded.root.find("info/package/license").get("url") == "https://opensource.org/licenses/MIT"
    assert reloaded.root.find("Actions") is not None
    assert reloaded.file_entries() == [FileEntry("a.txt", "", "a.txt")]
