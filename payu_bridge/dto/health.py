from datetime import datetime
from typing import Literal

from pydantic import BaseModel, field_serializer

from payu_bridge.utils.time import IST


class HealthResponse(BaseModel):
    status: Literal["HEALTHY", "DEGRADED"]
    database: Literal["connected", "disconnected"]
    current_time: datetime

    @field_serializer("current_time", when_used="json")
    def serialize_ist(self, value: datetime) -> datetime:
        return value.astimezone(IST)
