import base64
import hashlib
import hmac

import pytest

from umbpack.auth import (
    MEMBER_ID_HEADER,
    PROJECT_ID_HEADER,
    ApiKey,
    clean_path_and_query,
    format_timestamp,
    get_signature,
    signed_headers,
    split_api_key,
)


def test_split_api_key():
    assert split_api_key("12-34-abc-def") == ApiKey(project_id=12, member_id=34, token="abc-def")
    assert split_api_key("x-34-tok") == ApiKey(project_id=0, member_id=34, token="tok")
    with pytest.raises(ValueError):
        split_api_key("no-token")


def test_format_timestamp():
    assert format_timestamp(1571234567.0) == "1571234567"
    assert format_timestamp(1571234567.25) == "1571234567.25"


def test_clean_path_and_query():
    assert clean_path_and_query("https://our.umbraco.com//Umbraco/Api/X") == "/Umbraco/Api/X"
    assert clean_path_and_query("https://our.umbraco.com/a?b=1") == "/a?b=1"


def test_signed_headers():
    key = ApiKey(project_id=1, member_id=2, token="secret")
    headers = signed_headers(
        url="https://our.umbraco.com/Umbraco/Api/ProjectUpload/GetProjectFiles",
        key=key,
        now=1000.0,
        nonce="nonce",
    )

    expected_sig = base64.b64encode(
        hmac.new(b"secret", b"/Umbraco/Api/ProjectUpload/GetProjectFiles1000nonce", hashlib.sha256).digest()
    ).decode("ascii")
    assert get_signature("/Umbraco/Api/ProjectUpload/GetProjectFiles", "1000", "nonce", "secret") == expected_sig

    scheme, _, token = headers["Authorization"].partition(" ")
    assert scheme == "Bearer"
    assert base64.b64decode(token).decode("utf-8") == f"{expected_sig}:nonce:1000"
    assert headers[MEMBER_ID_HEADER] == "2"
    assert headers[PROJECT_ID_HEADER] == "1"
