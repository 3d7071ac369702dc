from typing import List

from pydantic import BaseModel, ConfigDict, Field


# ----- User -----
class User(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str = ""
    create_time: int = 0
    update_time: int = 0

    username: str = ""
    password: str = Field(default="", repr=False)
    disabled: bool = False
    allowed_tenant_access: List[str] = Field(default_factory=list)
    person_id: str = ""

    first_name: str = ""
    last_name: str = ""
    profile_uri: str = ""

    def get_hashed_secret(self) -> str:
        return self.password


# ----- Listing -----
class ListUsersRequest(BaseModel):
    allowed_tenant_access: str = ""
    person_id: str = ""
    username: str = ""
    first_name: str = ""
    last_name: str = ""
    disabled: bool = False
