from datetime import date, datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, RootModel, model_validator


class StandardOrderIn(BaseModel):
    kind: Literal["standard"]
    guideId: str
    serviceStartTime: datetime
    duration: int = Field(ge=1, le=24)  # hours
    remark: str = ""


class CustomOrderIn(BaseModel):
    kind: Literal["custom"]
    destination: str = Field(min_length=1, max_length=100)
    startDate: date
    endDate: Optional[date] = None
    peopleCount: int = Field(default=1, ge=1)
    budget: Optional[int] = Field(default=None, ge=0)  # minor units
    content: str = Field(min_length=10)
    remark: str = ""

    @model_validator(mode="after")
    def _end_after_start(self):
        if self.endDate is not None and self.endDate < self.startDate:
            raise ValueError("endDate must not be before startDate")
        return self


class OrderCreate(RootModel[Annotated[Union[StandardOrderIn, CustomOrderIn], Field(discriminator="kind")]]):
    pass


class CheckInIn(BaseModel):
    type: Literal["start", "end"]
    attachmentId: str
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class OvertimeCreateIn(BaseModel):
    duration: int = Field(ge=1, le=12)  # extra hours


class AdminRefundIn(BaseModel):
    amount: int = Field(gt=0)
    reason: str = Field(default="", max_length=500)


class AssignGuideIn(BaseModel):
    guideId: str
