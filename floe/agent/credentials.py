import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence
from urllib.parse import urlparse

import boto3
import msgpack
from pydantic import BaseModel

from floe.agent.config import (
    S3_DELEGATION_ROLE_ARN,
    S3_ENDPOINT,
    S3_REGION,
    S3_TOKEN_DURATION,
    TOKEN_FILE,
)
from floe.logger.common import logger

TOKEN_STORAGE_MAGIC = "FLTS"
TOKEN_STORAGE_VERSION = 1

S3_DELEGATION_KIND = "S3_DELEGATION_TOKEN"


class Token(BaseModel):
    identifier: str
    password: bytes
    kind: str
    service: str

    def __str__(self) -> str:
        return f"Kind: {self.kind}, Service: {self.service}"


class Credentials:
    """Tokens keyed by identifier; adding an existing identifier replaces it."""

    def __init__(self):
        self._tokens: Dict[str, Token] = {}

    def add_token(self, alias: str, token: Token) -> None:
        self._tokens[alias] = token

    def get_token(self, alias: str) -> Optional[Token]:
        return self._tokens.get(alias)

    def tokens(self) -> List[Token]:
        return list(self._tokens.values())

    def __len__(self) -> int:
        return len(self._tokens)

    def write_token_storage(self) -> bytes:
        return msgpack.packb(
            {
                "magic": TOKEN_STORAGE_MAGIC,
                "version": TOKEN_STORAGE_VERSION,
                "tokens": [
                    [alias, token.model_dump()] for alias, token in self._tokens.items()
                ],
            },
            use_bin_type=True,
        )

    @classmethod
    def read_token_storage(cls, data: bytes) -> "Credentials":
        doc = msgpack.unpackb(data, raw=False)
        if not isinstance(doc, dict) or doc.get("magic") != TOKEN_STORAGE_MAGIC:
            raise ValueError("Not a token storage document")
        if doc.get("version") != TOKEN_STORAGE_VERSION:
            raise ValueError(f"Unknown token storage version {doc.get('version')}")
        credentials = cls()
        for alias, fields in doc.get("tokens", []):
            credentials.add_token(alias, Token(**fields))
        return credentials


class TokenService(Protocol):
    def obtain_delegation_tokens(self, paths: Sequence[str]) -> List[Token]:
        """Get tokens that let a container access the given storage paths."""
        ...


class S3TokenService(TokenService):
    """
    Issues one temporary STS credential per bucket referenced by the paths.

    With a delegation role, the credential comes from ``assume_role`` with a
    session policy limited to that bucket; otherwise ``get_session_token``.
    """

    def __init__(
        self,
        role_arn: Optional[str] = S3_DELEGATION_ROLE_ARN,
        duration_seconds: int = S3_TOKEN_DURATION,
        client: Any = None,
    ):
        self.role_arn = role_arn
        self.duration_seconds = duration_seconds
        if client is None:
            client_kwargs = {"service_name": "sts", "region_name": S3_REGION}
            if S3_ENDPOINT:
                client_kwargs["endpoint_url"] = S3_ENDPOINT
            client = boto3.client(**client_kwargs)
        self.client = client

    @staticmethod
    def bucket_policy(bucket: str) -> str:
        return json.dumps(
            {
                "Version": "2012-10-17",
                "Statement": [
                    {
                        "Effect": "Allow",
                        "Action": "s3:*",
                        "Resource": [
                            f"arn:aws:s3:::{bucket}",
                            f"arn:aws:s3:::{bucket}/*",
                        ],
                    }
                ],
            }
        )

    def _credentials_for(self, bucket: str) -> Dict[str, Any]:
        if self.role_arn:
            response = self.client.assume_role(
                RoleArn=self.role_arn,
                RoleSessionName=f"floe-{bucket}"[:64],
                Policy=self.bucket_policy(bucket),
                DurationSeconds=self.duration_seconds,
            )
        else:
            response = self.client.get_session_token(
                DurationSeconds=self.duration_seconds
            )
        return response["Credentials"]

    def obtain_delegation_tokens(self, paths: Sequence[str]) -> List[Token]:
        buckets: List[str] = []
        for path in paths:
            parsed = urlparse(path)
            if parsed.scheme != "s3":
                logger.debug(f"No delegation token needed for {path}")
                continue
            if parsed.netloc not in buckets:
                buckets.append(parsed.netloc)

        tokens = []
        for bucket in buckets:
            creds = self._credentials_for(bucket)
            secret = {
                "aws_access_key_id": creds["AccessKeyId"],
                "aws_secret_access_key": creds["SecretAccessKey"],
                "aws_session_token": creds["SessionToken"],
                "expiration": str(creds.get("Expiration", "")),
            }
            token = Token(
                identifier=f"s3:{bucket}:{creds['AccessKeyId']}",
                password=json.dumps(secret).encode("utf-8"),
                kind=S3_DELEGATION_KIND,
                service=f"s3://{bucket}",
            )
            logger.info(f"Got delegation token for s3://{bucket}")
            tokens.append(token)
        return tokens


def current_user_tokens(token_file: Optional[str] = TOKEN_FILE) -> List[Token]:
    """
    Tokens already held by the invoking identity, read from its token file.
    No configured file means no tokens; a configured file that is missing is an error.
    """
    if not token_file:
        return []
    path = Path(token_file)
    if not path.exists():
        raise FileNotFoundError(f"Token file {token_file} does not exist.")
    return Credentials.read_token_storage(path.read_bytes()).tokens()


def bundle(
    target_paths: Sequence[str],
    user_tokens: Iterable[Token],
    token_service: TokenService,
) -> bytes:
    """
    Merge delegation tokens for ``target_paths`` with the user's tokens and
    serialize them. Any failure to obtain a token aborts the whole bundle.
    """
    credentials = Credentials()
    for token in token_service.obtain_delegation_tokens(target_paths):
        credentials.add_token(token.identifier, token)

    for token in user_tokens:
        logger.info(f"Adding user token {token.identifier} with {token}")
        credentials.add_token(token.identifier, token)

    data = credentials.write_token_storage()
    logger.debug(f"Wrote tokens. Credentials buffer length: {len(data)}")
    return data
