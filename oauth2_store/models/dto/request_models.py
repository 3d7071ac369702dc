import time
import uuid
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from oauth2_store.models.dto.client_models import Client


def _now() -> int:
    return int(time.time())


# ----- Session payload -----
class Session(BaseModel):
    """
    Caller owned session payload.

    Subclass it to carry protocol specific claims. The store persists
    ``model_dump(mode="json")`` and rebuilds it with the subclass handed to the
    ``get_*`` call, so fields it doesn't know about survive the round trip.
    """

    model_config = ConfigDict(extra="allow")

    subject: str = ""
    username: str = ""
    # token type -> expiry (Unix seconds)
    expires_at: Dict[str, int] = Field(default_factory=dict)


# ----- Requester -----
class Request(BaseModel):
    """A fully formed protocol request, as handed over by the OAuth2 engine."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    requested_at: int = Field(default_factory=_now)
    client: Optional[Client] = None

    requested_scopes: List[str] = Field(default_factory=list)
    granted_scopes: List[str] = Field(default_factory=list)
    requested_audience: List[str] = Field(default_factory=list)
    granted_audience: List[str] = Field(default_factory=list)
    form: Dict[str, List[str]] = Field(default_factory=dict)

    session: Session = Field(default_factory=Session)

    @property
    def client_id(self) -> str:
        return self.client.id if self.client else ""

    def grant_scope(self, scope: str) -> None:
        if scope not in self.granted_scopes:
            self.granted_scopes.append(scope)

    def grant_audience(self, audience: str) -> None:
        if audience not in self.granted_audience:
            self.granted_audience.append(audience)


# ----- Stored record -----
class StoredRequest(BaseModel):
    """The persisted shape of a request, keyed by its signature."""

    model_config = ConfigDict(from_attributes=True)

    signature: str
    request_id: str
    create_time: int = 0
    update_time: int = 0
    requested_at: int = 0

    client_id: str
    user_id: str = ""

    requested_scopes: List[str] = Field(default_factory=list)
    granted_scopes: List[str] = Field(default_factory=list)
    requested_audience: List[str] = Field(default_factory=list)
    granted_audience: List[str] = Field(default_factory=list)
    form: Dict[str, List[str]] = Field(default_factory=dict)

    active: bool = True
    session: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_request(cls, signature: str, request: Request) -> "StoredRequest":
        session = request.session
        return cls(
            signature=signature,
            request_id=request.id,
            create_time=_now(),
            requested_at=request.requested_at,
            client_id=request.client_id,
            user_id=session.username or session.subject,
            requested_scopes=list(request.requested_scopes),
            granted_scopes=list(request.granted_scopes),
            requested_audience=list(request.requested_audience),
            granted_audience=list(request.granted_audience),
            form={key: list(values) for key, values in request.form.items()},
            session=session.model_dump(mode="json"),
        )

    def to_request(self, client: Client, session: Optional[Session] = None) -> Request:
        """
        Rebuild the protocol request.

        Args:
            client: The resolved owning client.
            session: Destination session; its class decides how the stored
                payload is parsed.
        """
        session_cls = type(session) if session is not None else Session
        return Request(
            id=self.request_id,
            requested_at=self.requested_at,
            client=client,
            requested_scopes=list(self.requested_scopes),
            granted_scopes=list(self.granted_scopes),
            requested_audience=list(self.requested_audience),
            granted_audience=list(self.granted_audience),
            form={key: list(values) for key, values in self.form.items()},
            session=session_cls.model_validate(self.session),
        )


# ----- Listing -----
class ListRequestsRequest(BaseModel):
    """Conjunctive session record filter. Empty fields are not constrained."""

    client_id: str = ""
    user_id: str = ""
    scopes_intersection: List[str] = Field(default_factory=list)
    scopes_union: List[str] = Field(default_factory=list)
    granted_scopes_intersection: List[str] = Field(default_factory=list)
    granted_scopes_union: List[str] = Field(default_factory=list)
