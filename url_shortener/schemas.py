from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr, model_validator
from typing import Optional, List, Union

# Domain records

class UrlRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    original_url: str
    shortcode: str = Field(pattern=r"^[A-Za-z0-9]{1,10}$")
    created_at: datetime
    expires_at: datetime
    validity_minutes: float = Field(gt=0)

    @model_validator(mode="after")
    def _expires_after_creation(self):
        if self.expires_at <= self.created_at:
            raise ValueError("expires_at must be later than created_at")
        return self

class ClickEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    referrer: str = "direct"
    location: str = "unknown"
    user_agent: Optional[str] = None

class UrlStats(BaseModel):
    original_url: str
    shortcode: str
    created_at: datetime
    expires_at: datetime
    click_count: int = Field(ge=0)
    clicks: List[ClickEvent]

# HTTP payloads

class CreateShortURLReq(BaseModel):
    url: Optional[StrictStr] = Field(None, description="Original long URL")
    validity: Optional[Union[StrictInt, StrictFloat]] = Field(None, description="Minutes (default 30)")
    shortcode: Optional[StrictStr] = Field(None, description="Custom shortcode")

class CreateShortURLResp(BaseModel):
    shortLink: str
    expiry: str

class ClickItem(BaseModel):
    timestamp: str
    referrer: str
    location: str
    userAgent: Optional[str] = None

class StatsResp(BaseModel):
    originalUrl: str
    shortcode: str
    createdAt: str
    expiresAt: str
    clickCount: int
    clicks: List[ClickItem]
