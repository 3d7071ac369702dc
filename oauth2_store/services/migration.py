"""
Zero-downtime migration of stored secrets between hash algorithms.

During a rolling migration some rows still hold a digest produced by the
legacy algorithm while others already hold the current one. Callers supply an
``AuthFunc`` that knows how to check the legacy digest (for example MD5 or
SHA-1) and report back ``(record, authenticated)``:

- shortcut if the stored digest already looks like the current algorithm
- look the record up, returning ``(None, False)`` (or an empty record)
  when it doesn't exist
- check the presented secret against the legacy digest
- return the record and the outcome

When the legacy check succeeds the secret is re-hashed with the current
hasher and written back, so the next authentication takes the normal path.
"""

import logging
from typing import Awaitable, Callable, Optional, Protocol, TypeVar

from oauth2_store.common.exceptions import AccessDeniedError, NotFoundError


class Credential(Protocol):
    id: str
    disabled: bool

    def get_hashed_secret(self) -> str:
        ...


T = TypeVar("T", bound=Credential)

AuthFunc = Callable[[], tuple[Optional[T], bool]]


async def authenticate_migration(
    current_auth: AuthFunc,
    secret: str,
    *,
    compare: Callable[[str, str], Awaitable[None]],
    rehash: Callable[[str], Awaitable[str]],
    persist: Callable[[T, str], Awaitable[T]],
    logger: logging.Logger,
    fields: dict,
) -> T:
    """
    Authenticate against a legacy hash and upgrade it on success.

    Args:
        current_auth: Legacy authentication function supplied by the caller.
        secret: The presented plaintext secret.
        compare: Checks a secret against a digest with the current hasher.
        rehash: Hashes a secret with the current hasher.
        persist: Writes the new digest for the record and returns the
            updated record. Only the secret field may change.
        logger: Logger of the calling manager.
        fields: Structured log fields of the calling manager.

    Returns:
        The authenticated, possibly upgraded, record.

    Raises:
        NotFoundError: The legacy function returned no record, or an empty
            one it could not authenticate.
        AccessDeniedError: The record is disabled.
        AuthFailureError: Neither the legacy nor the current hash matched.
        HashError: The current hasher failed to produce a digest.
    """
    record, authenticated = current_auth()

    if record is None or (not record.id and not authenticated):
        logger.debug("resource not found", extra=fields)
        raise NotFoundError(message="resource not found")

    if getattr(record, "public", False):
        # Public clients have no secret to check
        logger.debug("public client allowed access", extra=fields)
        return record

    if record.disabled:
        logger.debug("disabled resource denied access", extra=fields)
        raise AccessDeniedError(message="access denied")

    if not authenticated:
        # Already migrated, or simply the wrong secret
        await compare(record.get_hashed_secret(), secret)
        return record

    new_hash = await rehash(secret)
    logger.info("upgrading legacy secret hash", extra=fields)
    return await persist(record, new_hash)
