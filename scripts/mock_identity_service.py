#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

USERS_BY_TOKEN: dict[str, dict[str, object]] = {
    "seeker-token": {
        "id": "seeker-1",
        "email": "seeker@example.com",
        "app_metadata": {"role": "jobseeker"},
        "user_metadata": {"name": "Sam Seeker"},
    },
    "seeker2-token": {
        "id": "seeker-2",
        "email": "second.seeker@example.com",
        "app_metadata": {"role": "jobseeker"},
        "user_metadata": {},
    },
    "employer-token": {
        "id": "employer-1",
        "email": "hiring@example.com",
        "app_metadata": {"role": "employer"},
        "user_metadata": {"name": "Erin Employer"},
    },
    "employer2-token": {
        "id": "employer-2",
        "email": "talent@example.org",
        "app_metadata": {"role": "employer"},
        "user_metadata": {},
    },
}


def user_payload_for_token(token: str) -> dict[str, object] | None:
    return USERS_BY_TOKEN.get(token)


class MockIdentityHandler(BaseHTTPRequestHandler):
    server_version = "MockIdentity/1.0"

    def do_GET(self) -> None:  # noqa: N802 - stdlib handler signature
        if self.path == "/healthz":
            self._write_json(HTTPStatus.OK, {"status": "ok"})
            return

        if self.path != "/auth/v1/user":
            self._write_json(HTTPStatus.NOT_FOUND, {"detail": "not found"})
            return

        authorization = self.headers.get("Authorization", "")
        if not authorization.lower().startswith("bearer "):
            self._write_json(HTTPStatus.UNAUTHORIZED, {"detail": "missing bearer token"})
            return

        token = authorization.split(" ", maxsplit=1)[1].strip()
        user = user_payload_for_token(token)
        if user is None:
            self._write_json(HTTPStatus.UNAUTHORIZED, {"detail": "invalid token"})
            return

        self._write_json(HTTPStatus.OK, user)

    def log_message(self, _: str, *args: object) -> None:
        if args:
            print("mock-identity:", *args)

    def _write_json(self, status: HTTPStatus, payload: dict[str, object]) -> None:
        raw = json.dumps(payload).encode("utf-8")
        self.send_response(status.value)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(raw)))
        self.end_headers()
        self.wfile.write(raw)


def main() -> None:
    parser = argparse.ArgumentParser(description="Mock identity service exposing /auth/v1/user.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=54321)
    args = parser.parse_args()

    server = ThreadingHTTPServer((args.host, args.port), MockIdentityHandler)
    print(f"mock-identity listening on http://{args.host}:{args.port}", flush=True)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()


if __name__ == "__main__":
    main()
