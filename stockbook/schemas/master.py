from datetime import datetime

from pydantic import Field, field_validator

from stockbook.schemas.common import CamelModel


class MasterCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    order: int | None = Field(default=None, ge=0)  # material types only

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class MasterUpdate(MasterCreate):
    pass


class MasterOut(CamelModel):
    id: str
    name: str
    order: int | None = None
    created_at: datetime | None = None
