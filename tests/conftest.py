import pathlib

import pytest


def write_manifest(path: pathlib.Path, *, name: str | None = "Demo", version: str | None = None, files: str = "") -> pathlib.Path:
    package_parts: list[str] = []
    if name is not None:
        package_parts.append(f"<name>{name}</name>")
    if version is not None:
        package_parts.append(f"<version>{version}</version>")
    package_parts.append('<license url="https://opensource.org/licenses/MIT">MIT</license>')
    text: str = (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        "<umbPackage>\n"
        "  <info>\n"
        f"    <package>{''.join(package_parts)}</package>\n"
        "    <author><name>Jane</name><website>https://example.com</website></author>\n"
        "    <readme><![CDATA[Hello <b>world</b>]]></readme>\n"
        "  </info>\n"
        f"  <files>{files}</files>\n"
        "  <Actions />\n"
        "</umbPackage>\n"
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def write_file(path: pathlib.Path, content: str = "x") -> pathlib.Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture()
def demo_folder(tmp_path: pathlib.Path) -> pathlib.Path:
    folder: pathlib.Path = tmp_path / "Demo"
    write_manifest(folder / "package.xml", files='<file path="bin/Demo.dll" orgPath="bin" />')
    write_file(folder / "bin" / "Demo.dll", "dll")
    return folder
