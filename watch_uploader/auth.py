"""
Module for choosing how each upload attempt authenticates to S3.
"""
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import WatchConfig

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Raised when the selected strategy could not produce credentials."""


class AuthKind(str, Enum):
    STORED_CREDENTIALS = "stored-credentials"
    DELEGATED = "delegated"
    AMBIENT = "ambient"


@dataclass(frozen=True)
class AuthContext:
    """Credentials for exactly one upload attempt."""
    kind: AuthKind
    session: boto3.session.Session
    description: str = ""


class CredentialStore(Protocol):
    def get(self) -> Optional[bytes]: ...


def bucket_policy(bucket: str) -> str:
    """Inline session policy limiting a delegated token to one bucket's objects."""
    return json.dumps({
        "Version": "2012-10-17",
        "Statement": [
            {
                "Effect": "Allow",
                "Action": [
                    "s3:GetObject",
                    "s3:PutObject",
                    "s3:AbortMultipartUpload",
                    "s3:ListMultipartUploadParts",
                ],
                "Resource": f"arn:aws:s3:::{bucket}/*",
            },
            {
                "Effect": "Allow",
                "Action": ["s3:ListBucket"],
                "Resource": f"arn:aws:s3:::{bucket}",
            },
        ],
    })


def parse_credential_blob(blob: bytes) -> dict:
    """Turn a stored JSON blob into ``boto3.session.Session`` keyword arguments.

    Accepts the credential_process shape (``AccessKeyId``...) as well as the
    shared-credentials shape (``aws_access_key_id``...).

    Raises:
        AuthError: If the blob is not JSON or lacks a key pair
    """
    try:
        data = json.loads(blob.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise AuthError(f"stored credentials are not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise AuthError("stored credentials must be a JSON object")

    access_key = data.get("AccessKeyId") or data.get("aws_access_key_id")
    secret_key = data.get("SecretAccessKey") or data.get("aws_secret_access_key")
    token = data.get("SessionToken") or data.get("aws_session_token")
    if not access_key or not secret_key:
        raise AuthError("stored credentials are missing an access key or secret key")

    return {
        "aws_access_key_id": access_key,
        "aws_secret_access_key": secret_key,
        "aws_session_token": token,
    }


class AuthSelector:
    """Picks credentials in priority order: stored blob, delegated role, ambient.

    Nothing is cached, so rotated or revoked credentials apply to the very
    next attempt.
    """

    def __init__(self, config: WatchConfig, credential_store: CredentialStore,
                 session_factory: Callable[..., boto3.session.Session] = boto3.session.Session):
        self.config = config
        self.credential_store = credential_store
        self._session_factory = session_factory

    def resolve(self) -> AuthContext:
        """Resolve the credentials to use for one attempt.

        Raises:
            AuthError: If stored credentials are malformed or delegation fails.
                Delegation failures never fall back to ambient credentials.
        """
        blob = self.credential_store.get()
        if blob:
            session = self._new_session(
                region_name=self.config.region,
                **parse_credential_blob(blob)
            )
            return AuthContext(
                kind=AuthKind.STORED_CREDENTIALS,
                session=session,
                description="stored credentials from keyring"
            )

        if self.config.role_arn:
            return self._assume_role(self.config.role_arn)

        logger.warning(
            "No stored credentials and no role to assume; using default "
            "AWS credentials (may not be sufficient for S3 access)"
        )
        return AuthContext(
            kind=AuthKind.AMBIENT,
            session=self._new_session(region_name=self.config.region),
            description="default credential chain"
        )

    def _assume_role(self, role_arn: str) -> AuthContext:
        base = self._new_session(region_name=self.config.region)
        try:
            response = base.client("sts").assume_role(
                RoleArn=role_arn,
                RoleSessionName=self.config.role_session_name,
                DurationSeconds=self.config.role_duration_seconds,
                Policy=bucket_policy(self.config.bucket)
            )
        except (BotoCoreError, ClientError) as e:
            raise AuthError(f"could not assume role {role_arn}: {e}") from e

        creds = response["Credentials"]
        session = self._new_session(
            aws_access_key_id=creds["AccessKeyId"],
            aws_secret_access_key=creds["SecretAccessKey"],
            aws_session_token=creds["SessionToken"],
            region_name=self.config.region
        )
        return AuthContext(
            kind=AuthKind.DELEGATED,
            session=session,
            description=f"assumed role {role_arn}"
        )

    def _new_session(self, **kwargs) -> boto3.session.Session:
        try:
            return self._session_factory(**kwargs)
        except BotoCoreError as e:
            raise AuthError(f"could not create AWS session: {e}") from e

    def describe_strategy(self) -> str:
        """Name the strategy ``resolve`` would pick now, without contacting AWS."""
        if self.credential_store.get():
            return "Using stored credentials from keyring"
        if self.config.role_arn:
            return f"Assuming role {self.config.role_arn} (no stored credentials)"
        return "WARNING: using default AWS credentials (no stored credentials, no role)"
