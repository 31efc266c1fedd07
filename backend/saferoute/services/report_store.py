"""Community report persistence."""

import logging
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from saferoute.config import settings
from saferoute.models.community_report import CommunityReportRecord
from saferoute.schemas.report import CommunityReport, ReportCreate, ReportView, VoteType
from saferoute.services.errors import ReportNotFound
from saferoute.services.report_adjuster import (
    confidence_score,
    is_valid,
    now_millis,
    report_impact,
    time_ago,
)

logger = logging.getLogger(__name__)


def to_report(record: CommunityReportRecord) -> CommunityReport:
    return CommunityReport(
        id=record.id,
        lat=record.lat,
        lng=record.lng,
        type=record.type,
        description=record.description or "",
        upvotes=record.upvotes or 0,
        downvotes=record.downvotes or 0,
        timestamp_millis=record.timestamp_ms,
        reported_by=record.reported_by,
    )


def to_view(report: CommunityReport, now_ms: int) -> ReportView:
    """Attach confidence, impact and validity as seen at ``now_ms``."""
    valid = is_valid(
        report,
        now_ms,
        fresh_hours=settings.report_fresh_hours,
        confirm_upvotes=settings.report_confirm_upvotes,
        min_confidence=settings.report_min_confidence,
    )
    return ReportView(
        **report.model_dump(),
        confidence=confidence_score(report.upvotes, report.downvotes),
        impact=report_impact(report) if valid else 0.0,
        valid=valid,
        time_ago=time_ago(report.timestamp_millis, now_ms),
    )


async def _get_record(db: AsyncSession, report_id: str) -> CommunityReportRecord:
    result = await db.execute(
        select(CommunityReportRecord).where(
            CommunityReportRecord.id == report_id,
            CommunityReportRecord.dismissed == False,  # noqa: E712
        )
    )
    record = result.scalar_one_or_none()
    if record is None:
        raise ReportNotFound(f"Report {report_id} not found")
    return record


async def create_report(
    db: AsyncSession,
    data: ReportCreate,
    now_ms: Optional[int] = None,
) -> CommunityReport:
    """Store a committed report. New reports start with no votes."""
    record = CommunityReportRecord(
        lat=data.lat,
        lng=data.lng,
        type=data.type,
        description=data.description,
        upvotes=0,
        downvotes=0,
        timestamp_ms=now_ms if now_ms is not None else now_millis(),
        reported_by=data.reported_by,
        dismissed=False,
    )
    db.add(record)
    await db.commit()
    await db.refresh(record)

    logger.info(f"Created {record.type.value} report {record.id} at ({record.lat:.5f}, {record.lng:.5f})")
    return to_report(record)


async def get_report(db: AsyncSession, report_id: str) -> CommunityReport:
    return to_report(await _get_record(db, report_id))


async def list_reports(db: AsyncSession) -> List[CommunityReport]:
    """All reports that have not been dismissed, newest first."""
    query = (
        select(CommunityReportRecord)
        .where(CommunityReportRecord.dismissed == False)  # noqa: E712
        .order_by(CommunityReportRecord.timestamp_ms.desc(), CommunityReportRecord.id)
    )
    result = await db.execute(query)
    return [to_report(r) for r in result.scalars().all()]


async def list_valid_reports(db: AsyncSession, now_ms: Optional[int] = None) -> List[CommunityReport]:
    """Reports that currently count toward route scoring."""
    now_ms = now_ms if now_ms is not None else now_millis()
    return [
        r for r in await list_reports(db)
        if is_valid(
            r,
            now_ms,
            fresh_hours=settings.report_fresh_hours,
            confirm_upvotes=settings.report_confirm_upvotes,
            min_confidence=settings.report_min_confidence,
        )
    ]


async def vote(db: AsyncSession, report_id: str, vote_type: VoteType) -> CommunityReport:
    """Add one up or down vote.

    The increment happens in SQL so concurrent votes are never lost.
    """
    column = (
        CommunityReportRecord.upvotes
        if vote_type == VoteType.UP
        else CommunityReportRecord.downvotes
    )
    result = await db.execute(
        update(CommunityReportRecord)
        .where(
            CommunityReportRecord.id == report_id,
            CommunityReportRecord.dismissed == False,  # noqa: E712
        )
        .values({column: column + 1})
    )
    if result.rowcount == 0:
        await db.rollback()
        raise ReportNotFound(f"Report {report_id} not found")
    await db.commit()

    record = await _get_record(db, report_id)
    await db.refresh(record)
    logger.info(f"Report {report_id} voted {vote_type.value}: +{record.upvotes}/-{record.downvotes}")
    return to_report(record)


async def dismiss(db: AsyncSession, report_id: str) -> CommunityReport:
    """Hide a report. The row is kept, flagged as dismissed."""
    record = await _get_record(db, report_id)
    record.dismissed = True
    await db.commit()
    logger.info(f"Dismissed report {report_id}")
    return to_report(record)
