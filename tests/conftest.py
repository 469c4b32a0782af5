from __future__ import annotations

from collections.abc import Iterator

import httpx
import pytest

from lexforge.core.hashing import sha256_hex

JSON_G4 = rb"""lexer grammar JSON;

LBRACE : '{' ;
RBRACE : '}' ;
LBRACK : '[' ;
RBRACK : ']' ;
COLON  : ':' ;
COMMA  : ',' ;
TRUE   : 'true' ;
FALSE  : 'false' ;
NULL   : 'null' ;
STRING : '"' (ESC | ~["\\])* '"' ;
fragment ESC : '\\' ["\\/bfnrt] ;
NUMBER : '-'? INT ('.' [0-9]+)? ;
fragment INT : '0' | [1-9] [0-9]* ;
WS : [ \t\r\n]+ -> skip ;
"""

INI_G4 = rb"""lexer grammar INI;

LBRACK  : '[' ;
RBRACK  : ']' ;
EQ      : '=' ;
COMMENT : ';' ~[\r\n]* -> skip ;
NAME    : [A-Za-z_] [A-Za-z0-9_.]* ;
NL      : [\r\n]+ ;
WS      : [ \t]+ -> channel(HIDDEN) ;
"""

JSON_URL = "https://grammars.example/json/JSON.g4"
INI_URL = "https://grammars.example/ini/INI.g4"


class RemoteStub:
    """In-memory HTTP origin backed by httpx.MockTransport.

    Attributes:
        routes: URL → body bytes (or a prepared httpx.Response).
        calls: Every requested URL, in order.
        client: httpx.Client wired to the stub.
    """

    def __init__(self) -> None:
        self.routes: dict[str, bytes | httpx.Response] = {}
        self.calls: list[str] = []
        self.client = httpx.Client(transport=httpx.MockTransport(self._handle), follow_redirects=True)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.calls.append(url)
        body = self.routes.get(url)
        if body is None:
            return httpx.Response(404, text="not found")
        if isinstance(body, httpx.Response):
            return body
        return httpx.Response(200, content=body)

    def serve(self, url: str, body: bytes | httpx.Response) -> None:
        self.routes[url] = body


@pytest.fixture
def remote() -> Iterator[RemoteStub]:
    stub = RemoteStub()
    yield stub
    stub.client.close()


@pytest.fixture
def json_g4() -> bytes:
    return JSON_G4


@pytest.fixture
def ini_g4() -> bytes:
    return INI_G4


@pytest.fixture
def json_url() -> str:
    return JSON_URL


@pytest.fixture
def ini_url() -> str:
    return INI_URL


@pytest.fixture
def json_manifest() -> dict[str, dict[str, object]]:
    """Single-entry manifest pinning JSON_G4."""
    return {"json": {"url": JSON_URL, "sha256": sha256_hex(JSON_G4), "extensions": ["json"]}}


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # settings loaders read LEXFORGE_* and ./lexforge.toml
    for key in (
        "ROOT_DIR",
        "MANIFEST",
        "STRATEGY",
        "JOBS",
        "TIMEOUT",
        "TOOL_URL",
        "TOOL_SHA256",
        "TOOL_COMMAND",
        "TARGET_LANGUAGE",
    ):
        monkeypatch.delenv("LEXFORGE_" + key, raising=False)
