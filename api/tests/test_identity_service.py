from __future__ import annotations

import asyncio
import importlib.util
import threading
from http.server import ThreadingHTTPServer
from pathlib import Path
from types import ModuleType

import pytest
from fastapi import HTTPException

from hireboard.core import security
from hireboard.core.auth import Role

SCRIPT_PATH = Path(__file__).resolve().parents[2] / "scripts" / "mock_identity_service.py"


def _load_mock_module() -> ModuleType:
    spec = importlib.util.spec_from_file_location("mock_identity_service", SCRIPT_PATH)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def identity_url() -> str:
    module = _load_mock_module()
    server = ThreadingHTTPServer(("127.0.0.1", 0), module.MockIdentityHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    host, port = server.server_address[:2]
    yield f"http://{host}:{port}"
    server.shutdown()
    server.server_close()


def test_token_resolves_through_identity_service(identity_url: str) -> None:
    user = asyncio.run(
        security._fetch_identity_user(
            identity_url=identity_url,
            identity_api_key=None,
            token="employer-token",
            timeout_seconds=5.0,
        )
    )
    principal = security.resolve_principal(user)

    assert principal.user_id == "employer-1"
    assert principal.role is Role.EMPLOYER
    assert principal.display_name == "Erin Employer"


def test_unknown_token_is_unauthorized(identity_url: str) -> None:
    with pytest.raises(HTTPException) as excinfo:
        asyncio.run(
            security._fetch_identity_user(
                identity_url=identity_url,
                identity_api_key="anon-key",
                token="forged-token",
                timeout_seconds=5.0,
            )
        )
    assert excinfo.value.status_code == 401
