from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class PointsChangedEvent(BaseModel):
    """Payload handed to notification collaborators after a committed change.

    Consumers display ``newBalance``; ``pointsAdded`` is informational and is
    never applied to any balance again.
    """

    type: Literal["POINTS_AWARDED", "POINTS_REDEEMED"]
    customerId: str
    businessId: str
    programId: str
    cardId: str
    pointsAdded: int
    newBalance: int
    timestamp: datetime
