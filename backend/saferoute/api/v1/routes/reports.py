"""Community report API endpoints."""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from saferoute.api.deps import get_placements
from saferoute.db.session import get_db
from saferoute.schemas.report import (
    PlacementConfirm,
    PlacementStart,
    ReportCreate,
    ReportView,
    VoteType,
)
from saferoute.services import report_store
from saferoute.services.report_adjuster import REPORT_TYPES, now_millis
from saferoute.services.report_placement import PlacementRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


class VoteRequest(BaseModel):
    vote: VoteType


@router.get("/types")
async def report_types() -> List[dict]:
    """Report categories with their display label, description and colour."""
    return [{"type": t.value, **meta} for t, meta in REPORT_TYPES.items()]


@router.get("", response_model=List[ReportView])
async def list_reports(
    include_all: bool = Query(False, description="Include reports that no longer count toward scoring"),
    db: AsyncSession = Depends(get_db),
) -> List[ReportView]:
    """
    List community reports.

    By default only reports that currently affect routing are returned:
    fresh (under 48h) or confirmed (3+ upvotes), with at least 50% upvotes.
    """
    now_ms = now_millis()
    if include_all:
        reports = await report_store.list_reports(db)
    else:
        reports = await report_store.list_valid_reports(db, now_ms)
    return [report_store.to_view(r, now_ms) for r in reports]


@router.post("", response_model=ReportView, status_code=status.HTTP_201_CREATED)
async def submit_report(
    report: ReportCreate,
    db: AsyncSession = Depends(get_db),
) -> ReportView:
    """Submit a new report directly, without the placement flow."""
    created = await report_store.create_report(db, report)
    return report_store.to_view(created, now_millis())


@router.post("/placements", status_code=status.HTTP_201_CREATED)
async def start_placement(
    body: PlacementStart,
    placements: PlacementRegistry = Depends(get_placements),
) -> dict:
    """Drop a pin. The placement then waits for confirm or cancel."""
    placement = placements.start(body.lat, body.lng, body.reported_by)
    return placement.to_dict()


@router.post("/placements/{placement_id}/confirm", response_model=ReportView, status_code=status.HTTP_201_CREATED)
async def confirm_placement(
    placement_id: str,
    body: PlacementConfirm,
    placements: PlacementRegistry = Depends(get_placements),
    db: AsyncSession = Depends(get_db),
) -> ReportView:
    """Confirm a placement with its type and description, creating the report."""
    report = placements.confirm(placement_id, body.type, body.description)
    created = await report_store.create_report(db, report)
    return report_store.to_view(created, now_millis())


@router.post("/placements/{placement_id}/cancel")
async def cancel_placement(
    placement_id: str,
    placements: PlacementRegistry = Depends(get_placements),
) -> dict:
    """Abandon a placement. Nothing is stored."""
    placement = placements.cancel(placement_id)
    return placement.to_dict()


@router.get("/{report_id}", response_model=ReportView)
async def get_report(report_id: str, db: AsyncSession = Depends(get_db)) -> ReportView:
    report = await report_store.get_report(db, report_id)
    return report_store.to_view(report, now_millis())


@router.post("/{report_id}/vote", response_model=ReportView)
async def vote_on_report(
    report_id: str,
    body: VoteRequest,
    db: AsyncSession = Depends(get_db),
) -> ReportView:
    """
    Upvote or downvote a report.

    Votes drive confidence: a report stops affecting routes once fewer
    than half of its votes are upvotes.
    """
    report = await report_store.vote(db, report_id, body.vote)
    return report_store.to_view(report, now_millis())


@router.delete("/{report_id}", response_model=ReportView)
async def dismiss_report(report_id: str, db: AsyncSession = Depends(get_db)) -> ReportView:
    """Dismiss a report. It is hidden from listings and scoring, not deleted."""
    report = await report_store.dismiss(db, report_id)
    return report_store.to_view(report, now_millis())
