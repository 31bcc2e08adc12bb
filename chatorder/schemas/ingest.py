from typing import Optional

from pydantic import BaseModel, Field


class LocationPin(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class InboundMessage(BaseModel):
    message_id: Optional[str] = None
    from_phone: str = Field(min_length=3, max_length=30)
    text: str = ""
    location: Optional[LocationPin] = None


class IngestResult(BaseModel):
    used: bool
    kind: str
    reply: Optional[str] = None
    order_id: Optional[int] = None
    image: Optional[str] = None
    lane: Optional[str] = None


class SimulatorResult(IngestResult):
    state: str
