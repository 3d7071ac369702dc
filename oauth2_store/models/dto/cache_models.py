from pydantic import BaseModel, ConfigDict


class SessionCache(BaseModel):
    """Links a revocable identifier (``id``) to a session signature."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    signature: str
    create_time: int = 0
    update_time: int = 0
