from __future__ import annotations

import json
from pathlib import Path
from typing import List, Sequence

import msgpack
import pytest

from floe.agent.credentials import (
    S3_DELEGATION_KIND,
    Credentials,
    S3TokenService,
    Token,
    bundle,
    current_user_tokens,
)


def _token(identifier: str, password: bytes = b"secret", service: str = "svc") -> Token:
    return Token(identifier=identifier, password=password, kind="TEST", service=service)


class StaticTokenService:
    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.seen_paths: List[str] = []

    def obtain_delegation_tokens(self, paths: Sequence[str]) -> List[Token]:
        self.seen_paths = list(paths)
        return list(self.tokens)


class FailingTokenService:
    def obtain_delegation_tokens(self, paths: Sequence[str]) -> List[Token]:
        raise ConnectionError("token service unreachable")


def test_bundle_merges_storage_and_user_tokens() -> None:
    service = StaticTokenService([_token("storage-1")])
    blob = bundle(["s3://data/x"], [_token("user-1")], service)

    creds = Credentials.read_token_storage(blob)
    assert service.seen_paths == ["s3://data/x"]
    assert [t.identifier for t in creds.tokens()] == ["storage-1", "user-1"]


def test_later_token_overwrites_same_identifier() -> None:
    service = StaticTokenService([_token("shared", password=b"from-storage")])
    blob = bundle([], [_token("shared", password=b"from-user")], service)

    creds = Credentials.read_token_storage(blob)
    assert len(creds) == 1
    assert creds.get_token("shared").password == b"from-user"


def test_token_service_failure_aborts_bundle() -> None:
    with pytest.raises(ConnectionError):
        bundle(["s3://data/x"], [_token("user-1")], FailingTokenService())


def test_token_storage_format_is_versioned_msgpack() -> None:
    creds = Credentials()
    creds.add_token("a", _token("a"))
    doc = msgpack.unpackb(creds.write_token_storage(), raw=False)

    assert doc["magic"] == "FLTS"
    assert doc["version"] == 1
    assert doc["tokens"][0][0] == "a"
    assert doc["tokens"][0][1]["password"] == b"secret"


def test_read_token_storage_rejects_foreign_data() -> None:
    with pytest.raises(ValueError):
        Credentials.read_token_storage(msgpack.packb({"magic": "XXXX", "version": 1}))
    with pytest.raises(ValueError):
        Credentials.read_token_storage(msgpack.packb({"magic": "FLTS", "version": 99}))


def test_current_user_tokens_reads_token_file(tmp_path: Path) -> None:
    creds = Credentials()
    creds.add_token("u", _token("u"))
    token_file = tmp_path / "user.tokens"
    token_file.write_bytes(creds.write_token_storage())

    assert [t.identifier for t in current_user_tokens(str(token_file))] == ["u"]
    assert current_user_tokens(None) == []
    with pytest.raises(FileNotFoundError):
        current_user_tokens(str(tmp_path / "missing.tokens"))


class FakeSTSClient:
    def __init__(self):
        self.calls = []

    def _credentials(self, n: int):
        return {
            "Credentials": {
                "AccessKeyId": f"ASIA{n}",
                "SecretAccessKey": "s3cr3t",
                "SessionToken": "session",
                "Expiration": "2030-01-01T00:00:00Z",
            }
        }

    def assume_role(self, **kwargs):
        self.calls.append(("assume_role", kwargs))
        return self._credentials(len(self.calls))

    def get_session_token(self, **kwargs):
        self.calls.append(("get_session_token", kwargs))
        return self._credentials(len(self.calls))


def test_s3_token_service_issues_one_token_per_bucket() -> None:
    sts = FakeSTSClient()
    service = S3TokenService(role_arn="arn:aws:iam::1:role/floe", client=sts)

    tokens = service.obtain_delegation_tokens(
        ["s3://data/a.jar", "s3://data/b.jar", "s3://logs/x", "file:///tmp/local.jar"]
    )

    assert [t.service for t in tokens] == ["s3://data", "s3://logs"]
    assert all(t.kind == S3_DELEGATION_KIND for t in tokens)
    assert [c[0] for c in sts.calls] == ["assume_role", "assume_role"]
    policy = json.loads(sts.calls[0][1]["Policy"])
    assert "arn:aws:s3:::data/*" in policy["Statement"][0]["Resource"]
    secret = json.loads(tokens[0].password)
    assert secret["aws_session_token"] == "session"


def test_s3_token_service_without_role_uses_session_token() -> None:
    sts = FakeSTSClient()
    service = S3TokenService(role_arn=None, duration_seconds=900, client=sts)

    tokens = service.obtain_delegation_tokens(["s3://data/a.jar"])

    assert len(tokens) == 1
    assert sts.calls == [("get_session_token", {"DurationSeconds": 900})]


def test_local_paths_need_no_tokens() -> None:
    sts = FakeSTSClient()
    service = S3TokenService(role_arn=None, client=sts)
    assert service.obtain_delegation_tokens(["/tmp/a", "file:///tmp/b"]) == []
    assert sts.calls == []
