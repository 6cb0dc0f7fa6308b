"""Community reviews consumed by the aggregate endpoints."""

from flixr.community.models import CommunityStats, Review
from flixr.community.store import InMemoryReviewStore, ReviewStore

__all__ = ["Review", "CommunityStats", "ReviewStore", "InMemoryReviewStore"]
