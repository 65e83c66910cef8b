import os

from umbpack.paths import normalize_separators, resolve


def test_resolve_normalizes_separators_in_both_parts():
    source, dest = resolve("bin/sub\\My.dll", "App_Plugins/My")
    assert source == os.sep.join(["bin", "sub", "My.dll"])
    assert dest == os.sep.join(["App_Plugins", "My"])


def test_resolve_trims_destination_only():
    source, dest = resolve("/abs/file.txt", "/views/partials/")
    assert source == normalize_separators("/abs/file.txt")
    assert dest == os.sep.join(["views", "partials"])


def test_resolve_blank_destination_is_package_root():
    assert resolve("a.txt", "")[1] == ""
    assert resolve("a.txt", "   ")[1] == ""
    assert resolve("a.txt", None)[1] == ""
    assert resolve("a.txt", "/")[1] == ""
