from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, DateTime, Float, ForeignKey
from datetime import datetime
from typing import Optional
from .db import Base

class URL(Base):
    __tablename__ = "urls"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    shortcode: Mapped[str] = mapped_column(String(10), unique=True, index=True, nullable=False)
    original_url: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    validity_minutes: Mapped[float] = mapped_column(Float, nullable=False)
    click_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    clicks: Mapped[list["Click"]] = relationship("Click", back_populates="url", order_by="Click.id")

class Click(Base):
    __tablename__ = "clicks"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    url_id: Mapped[int] = mapped_column(ForeignKey("urls.id"), nullable=False, index=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    referrer: Mapped[str] = mapped_column(String, default="direct", nullable=False)
    location: Mapped[str] = mapped_column(String(64), default="unknown", nullable=False)
    user_agent: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    url: Mapped[URL] = relationship("URL", back_populates="clicks")
