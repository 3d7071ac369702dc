from typing import List

from pydantic import BaseModel, ConfigDict, Field


REDACTED = "REDACTED"


# ----- Client -----
class Client(BaseModel):
    """
    An OAuth 2.0 client registration.

    ``secret`` holds the plaintext only on its way into ``create``/``update``;
    everything returned by the store carries the hash.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str = ""
    create_time: int = 0
    update_time: int = 0

    allowed_audiences: List[str] = Field(default_factory=list)
    allowed_regions: List[str] = Field(default_factory=list)
    allowed_tenant_access: List[str] = Field(default_factory=list)
    grant_types: List[str] = Field(default_factory=list)
    response_types: List[str] = Field(default_factory=list)
    scopes: List[str] = Field(default_factory=list)
    redirect_uris: List[str] = Field(default_factory=list)

    public: bool = False
    disabled: bool = False

    secret: str = Field(default="", repr=False)

    name: str = ""
    owner: str = ""
    policy_uri: str = ""
    terms_of_service_uri: str = ""
    client_uri: str = ""
    logo_uri: str = ""
    contacts: List[str] = Field(default_factory=list)
    published: bool = False

    def get_hashed_secret(self) -> str:
        return self.secret

    def enable_scope_access(self, *scopes: str) -> None:
        for scope in scopes:
            if scope not in self.scopes:
                self.scopes.append(scope)

    def disable_scope_access(self, *scopes: str) -> None:
        self.scopes = [scope for scope in self.scopes if scope not in scopes]

    def redacted(self) -> "Client":
        """Copy safe to log or attach to an error."""
        return self.model_copy(update={"secret": REDACTED})


# ----- Listing -----
class ListClientsRequest(BaseModel):
    """
    Conjunctive client filter. Empty or false fields are not constrained.

    ``scopes_intersection`` matches clients holding every listed scope,
    ``scopes_union`` clients holding any of them; both apply when given.
    """

    allowed_tenant_access: str = ""
    redirect_uri: str = ""
    grant_type: str = ""
    response_type: str = ""
    scopes_intersection: List[str] = Field(default_factory=list)
    scopes_union: List[str] = Field(default_factory=list)
    contact: str = ""
    public: bool = False
    disabled: bool = False
