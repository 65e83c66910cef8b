"""Request signing for the our.umbraco.com project upload API.

Each request carries ``Authorization: Bearer <token>`` where the token is
``base64("<signature>:<nonce>:<timestamp>")`` and the signature is a base64
HMAC-SHA256 of ``<request path><timestamp><nonce>`` keyed by the API token.
"""

from dataclasses import dataclass
import base64
import hashlib
import hmac
import time
import urllib.parse
import uuid

PROJECT_ID_HEADER: str = "OurUmbraco-ProjectId"
MEMBER_ID_HEADER: str = "OurUmbraco-MemberId"
DEFAULT_BASE_URL: str = "https://our.umbraco.com"


@dataclass(frozen=True, slots=True)
class ApiKey:
    """Parts of a ``<projectId>-<memberId>-<token>`` API key.

    :ivar project_id: Project id (0 if not numeric).
    :ivar member_id: Member id (0 if not numeric).
    :ivar token: Secret token used for signing.
    """

    project_id: int
    member_id: int
    token: str


def split_api_key(api_key: str) -> ApiKey:
    """Split an API key into its parts.

    :param api_key: Key as issued by our.umbraco.com.
    :returns: Parsed key.
    :raises ValueError: If the key does not have three ``-``-separated parts.
    """

    parts: list[str] = api_key.strip().split("-", 2)
    if len(parts) != 3:
        raise ValueError("API key must look like '<projectId>-<memberId>-<token>'.")

    def as_int(value: str) -> int:
        return int(value) if value.isdigit() is True else 0

    return ApiKey(project_id=as_int(parts[0]), member_id=as_int(parts[1]), token=parts[2])


def format_timestamp(timestamp: float) -> str:
    """Format Unix seconds the way the upload service parses them back.

    :param timestamp: Seconds since the epoch.
    :returns: Shortest round-trip decimal text, without a trailing ``.0``.
    """

    text: str = repr(float(timestamp))
    if text.endswith(".0") is True:
        text = text[:-2]
    return text


def clean_path_and_query(url: str) -> str:
    """Return the path and query of ``url`` with doubled slashes collapsed.

    :param url: Absolute request URL.
    :returns: Path plus ``?query`` when present.
    """

    parts: urllib.parse.SplitResult = urllib.parse.urlsplit(url)
    path: str = parts.path or "/"
    if parts.query != "":
        path = f"{path}?{parts.query}"
    while "//" in path:
        path = path.replace("//", "/")
    return path


def get_signature(request_path: str, timestamp: str, nonce: str, secret: str) -> str:
    """Compute the base64 HMAC-SHA256 request signature.

    :param request_path: Cleaned request path and query.
    :param timestamp: Formatted timestamp.
    :param nonce: Request nonce.
    :param secret: API token.
    :returns: Base64 signature.
    """

    message: bytes = f"{request_path}{timestamp}{nonce}".encode("utf-8")
    digest: bytes = hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def generate_authorization_header(signature: str, nonce: str, timestamp: str) -> str:
    """Build the bearer token value.

    :param signature: Request signature.
    :param nonce: Request nonce.
    :param timestamp: Formatted timestamp.
    :returns: Base64 token.
    """

    return base64.b64encode(f"{signature}:{nonce}:{timestamp}".encode("utf-8")).decode("ascii")


def signed_headers(
    *,
    url: str,
    key: ApiKey,
    now: float | None = None,
    nonce: str | None = None,
) -> dict[str, str]:
    """Build the authentication headers for one request.

    :param url: Absolute request URL.
    :param key: Parsed API key.
    :param now: Optional timestamp override (seconds since the epoch).
    :param nonce: Optional nonce override.
    :returns: Header mapping.
    """

    timestamp: str = format_timestamp(time.time() if now is None else now)
    request_nonce: str = str(uuid.uuid4()) if nonce is None else nonce
    signature: str = get_signature(clean_path_and_query(url), timestamp, request_nonce, key.token)

    return {
        "Authorization": f"Bearer {generate_authorization_header(signature, request_nonce, timestamp)}",
        MEMBER_ID_HEADER: str(key.member_id),
        PROJECT_ID_HEADER: str(key.project_id),
    }
