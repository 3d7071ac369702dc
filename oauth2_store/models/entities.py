from enum import Enum


class Entity(str, Enum):
    """Physical collections (tables) managed by the store."""

    CLIENTS = "clients"
    USERS = "users"

    # Session request records, one table per grant kind
    AUTHORIZATION_CODES = "authorization_codes"
    ACCESS_TOKENS = "access_tokens"
    REFRESH_TOKENS = "refresh_tokens"
    PKCE_SESSIONS = "pkce_sessions"
    OPENID_CONNECT_SESSIONS = "openid_connect_sessions"

    # request id -> signature links used for revocation
    CACHE_ACCESS_TOKENS = "cache_access_tokens"
    CACHE_REFRESH_TOKENS = "cache_refresh_tokens"


SESSION_ENTITIES = (
    Entity.AUTHORIZATION_CODES,
    Entity.ACCESS_TOKENS,
    Entity.REFRESH_TOKENS,
    Entity.PKCE_SESSIONS,
    Entity.OPENID_CONNECT_SESSIONS,
)

CACHE_ENTITIES = (
    Entity.CACHE_ACCESS_TOKENS,
    Entity.CACHE_REFRESH_TOKENS,
)
