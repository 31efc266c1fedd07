# Database models
from saferoute.models.base import Base
from saferoute.models.community_report import CommunityReportRecord

__all__ = ["Base", "CommunityReportRecord"]
