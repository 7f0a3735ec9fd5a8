from pydantic import BaseModel, ConfigDict


class ErrorMessage(BaseModel):
    """
    Wire representation of a translated failure.

    Serialized as {"code": 400, "message": "..."}; `details` is only present
    when set.
    """
    model_config = ConfigDict(frozen=True)

    code: int
    message: str
    details: str | None = None

    def to_payload(self) -> dict:
        return self.model_dump(exclude_none=True)
