"""PKCE (Proof Key for Code Exchange) implementation per RFC 7636.

OAuth 2.1 requires PKCE for every authorization code flow, public and
confidential clients alike. ``S256`` is the default method; ``plain`` is
kept only for legacy servers.
"""

import base64
import hashlib
import re
import secrets
from dataclasses import dataclass
from typing import Literal

from ..exceptions import ConfigurationError

CodeChallengeMethod = Literal["S256", "plain"]

# RFC 7636 section 4.1 bounds for the code verifier
MIN_VERIFIER_LENGTH = 43
MAX_VERIFIER_LENGTH = 128
DEFAULT_VERIFIER_LENGTH = 64

# Unreserved URI characters: [A-Z] / [a-z] / [0-9] / "-" / "." / "_" / "~"
_VERIFIER_PATTERN = re.compile(r"^[A-Za-z0-9\-._~]+$")

SUPPORTED_METHODS = ("S256", "plain")


@dataclass(frozen=True)
class PkceCodePair:
    """PKCE code verifier and the challenge derived from it.

    The verifier stays with the client and is sent in the token request.
    The challenge is sent in the authorization request.
    """

    code_verifier: str
    code_challenge: str
    code_challenge_method: CodeChallengeMethod = "S256"


def _base64url(data: bytes) -> str:
    """Base64URL encode without padding (RFC 4648 Section 5)."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def generate_code_verifier(length: int = DEFAULT_VERIFIER_LENGTH) -> str:
    """Generate a cryptographically random code verifier.

    Random bytes are base64url-encoded and truncated, so the result only
    uses unreserved URI characters.

    Args:
        length: Length of the verifier (default 64, must be 43-128)

    Returns:
        Random code verifier string

    Raises:
        ConfigurationError: If length is outside the allowed range
    """
    if length < MIN_VERIFIER_LENGTH or length > MAX_VERIFIER_LENGTH:
        raise ConfigurationError(
            f"Code verifier length must be between {MIN_VERIFIER_LENGTH} "
            f"and {MAX_VERIFIER_LENGTH}, got {length}"
        )

    # 3 random bytes encode to 4 characters
    random_bytes = secrets.token_bytes((length * 3 + 3) // 4)
    return _base64url(random_bytes)[:length]


def generate_code_challenge(verifier: str, method: CodeChallengeMethod = "S256") -> str:
    """Derive the code challenge for a verifier.

    S256: ``BASE64URL(SHA256(ASCII(code_verifier)))``
    plain: the verifier itself

    Raises:
        ConfigurationError: If the method is not supported
    """
    if method == "plain":
        return verifier
    if method != "S256":
        raise ConfigurationError(
            f"Unsupported code challenge method {method!r}, expected one of {SUPPORTED_METHODS}"
        )

    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return _base64url(digest)


def generate_pkce_code_pair(
    method: CodeChallengeMethod = "S256",
    verifier_length: int = DEFAULT_VERIFIER_LENGTH,
) -> PkceCodePair:
    """Generate a verifier and its matching challenge.

    Used by OAuth21Auth.generate_pkce and the ``timesheet pkce`` command.
    """
    verifier = generate_code_verifier(verifier_length)
    challenge = generate_code_challenge(verifier, method)

    return PkceCodePair(
        code_verifier=verifier,
        code_challenge=challenge,
        code_challenge_method=method,
    )


def is_valid_code_verifier(verifier: str) -> bool:
    """Check a verifier's length (43-128) and character set."""
    if not isinstance(verifier, str):
        return False
    if len(verifier) < MIN_VERIFIER_LENGTH or len(verifier) > MAX_VERIFIER_LENGTH:
        return False
    return _VERIFIER_PATTERN.fullmatch(verifier) is not None


def generate_state() -> str:
    """Generate a random state parameter for CSRF protection.

    Returns:
        32-character random hex string
    """
    return secrets.token_hex(16)
