"""Community report database model for user-submitted hazards."""

from typing import Optional

from sqlalchemy import BigInteger, Boolean, Enum, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from saferoute.models.base import Base
from saferoute.schemas.report import ReportType


class CommunityReportRecord(Base):
    """User-submitted hazard report.

    Votes are only ever incremented. Dismissal is a flag, rows are not
    deleted.
    """

    __tablename__ = "community_reports"

    # Location
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lng: Mapped[float] = mapped_column(Float, nullable=False)

    # Classification
    type: Mapped[ReportType] = mapped_column(
        Enum(ReportType, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(Text, default="")

    # Votes
    upvotes: Mapped[int] = mapped_column(Integer, default=0)
    downvotes: Mapped[int] = mapped_column(Integer, default=0)

    # Epoch milliseconds, as the freshness rules work in milliseconds
    timestamp_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
    reported_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    dismissed: Mapped[bool] = mapped_column(Boolean, default=False)

    __table_args__ = (
        Index("ix_community_reports_dismissed_timestamp", "dismissed", "timestamp_ms"),
    )
