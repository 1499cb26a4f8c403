"""Signed "create pull requests" requests sent by external tooling.

The caller signs a request with the hex SHA-1 digest of
``<branch>|<shared secret>``.
"""

import hashlib
import hmac
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .exceptions import WebhookRequestError, WebhookSignatureError

DEFAULT_AUTHOR = "magic"
DEFAULT_TARGET = "master"


def compute_signature(branch: str, secret: str) -> str:
    """Signature expected for a branch."""
    return hashlib.sha1(f"{branch}|{secret}".encode(), usedforsecurity=False).hexdigest()


def verify_signature(branch: str, signature: str, secret: str) -> bool:
    """Check a request signature in constant time."""
    return hmac.compare_digest(compute_signature(branch, secret), signature)


@dataclass(frozen=True)
class CreatePullRequestsRequest:
    """Request to open pull requests for a branch in every repository carrying it."""

    branch: str
    signature: str
    author: str = DEFAULT_AUTHOR
    target: str = DEFAULT_TARGET
    dry_run: bool = False
    draft: bool = True

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> "CreatePullRequestsRequest":
        """Build from a JSON request body.

        Raises:
            WebhookRequestError: If the body or a mandatory field is missing
        """
        if not payload:
            raise WebhookRequestError("Payload is mandatory")

        branch = payload.get("branch")
        signature = payload.get("sign")
        if not branch or not signature:
            raise WebhookRequestError("Branch name and signature are mandatory")

        return cls(
            branch=str(branch),
            signature=str(signature),
            author=str(payload.get("author") or DEFAULT_AUTHOR),
            target=str(payload.get("target") or DEFAULT_TARGET),
            dry_run=bool(payload.get("dryrun", False)),
            draft=bool(payload.get("draft", True)),
        )

    def verify(self, secret: str | None) -> None:
        """Check the request signature.

        Raises:
            WebhookSignatureError: If no secret is configured or the signature is wrong
        """
        if not secret:
            raise WebhookSignatureError("Signed requests are not enabled")
        if not verify_signature(self.branch, self.signature, secret):
            raise WebhookSignatureError(f"Incorrect signature for {self.branch}")
