from typing import Protocol

import bcrypt

from oauth2_store.common.exceptions import AuthFailureError, HashError


class Hasher(Protocol):
    """
    Hashes and verifies client secrets and user passwords.

    Implementations are swappable so that a fleet can move between algorithms;
    see ``oauth2_store.services.migration``.
    """

    def hash(self, secret: str) -> str:
        ...

    def compare(self, hashed: str, secret: str) -> None:
        ...


class BCryptHasher:
    """
    bcrypt backed ``Hasher``.

    Design goals:
    - Never return or raise with the plaintext secret
    - Treat an unreadable stored digest the same as a wrong secret
    """

    def __init__(self, work_factor: int = 10):
        self.work_factor = work_factor

    def hash(self, secret: str) -> str:
        """
        Hash a secret with a fresh salt.

        Args:
            secret: The plaintext secret.

        Returns:
            The bcrypt digest as text.

        Raises:
            HashError: If bcrypt rejects the secret or the work factor.
        """
        try:
            digest: bytes = bcrypt.hashpw(
                secret.encode("utf-8"),
                bcrypt.gensalt(rounds=self.work_factor),
            )
        except (ValueError, TypeError) as e:
            raise HashError(message=f"unable to hash secret: {type(e).__name__}") from e

        return digest.decode("utf-8")

    def compare(self, hashed: str, secret: str) -> None:
        """
        Verify a secret against a stored digest.

        Args:
            hashed: The stored bcrypt digest.
            secret: The presented plaintext secret.

        Raises:
            AuthFailureError: If the secret does not match, or the digest was
                not produced by bcrypt (for example a legacy hash).
        """
        try:
            matched: bool = bcrypt.checkpw(
                secret.encode("utf-8"),
                hashed.encode("utf-8"),
            )
        except (ValueError, TypeError):
            matched = False

        if not matched:
            raise AuthFailureError(message="secret does not match")
