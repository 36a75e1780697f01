from pydantic import BaseModel, Field


class PayoutRequest(BaseModel):
    entry_ids: list[str] = Field(..., min_length=1, max_length=1000)
    batch_id: str = Field(..., min_length=1, max_length=100)


class PayoutResponse(BaseModel):
    batch_id: str
    requested: int
    marked: int
