"""Review storage interface and in-memory implementation."""

from abc import ABC, abstractmethod

from flixr.community.models import CommunityStats, Review


class ReviewStore(ABC):
    """Read/write access to community reviews.

    The aggregate routes read stats and recent reviews on every call; the
    results are never cached.
    """

    @abstractmethod
    async def get_stats(self, tmdb_id: int, media_type: str) -> CommunityStats:
        """Average rating (rounded to 2 decimals) and review count."""

    @abstractmethod
    async def latest(
        self, tmdb_id: int, media_type: str, limit: int = 10
    ) -> list[Review]:
        """Most recent reviews first."""

    @abstractmethod
    async def add(self, review: Review) -> Review:
        """Persist a review and return it."""


class InMemoryReviewStore(ReviewStore):
    """Process-local review store for development and tests."""

    def __init__(self, reviews: list[Review] | None = None):
        self._reviews: list[Review] = list(reviews or [])

    def _matching(self, tmdb_id: int, media_type: str) -> list[Review]:
        return [
            r
            for r in self._reviews
            if r.tmdb_id == tmdb_id and r.media_type == media_type
        ]

    async def get_stats(self, tmdb_id: int, media_type: str) -> CommunityStats:
        matching = self._matching(tmdb_id, media_type)
        if not matching:
            return CommunityStats()
        avg = sum(r.rating for r in matching) / len(matching)
        return CommunityStats(avg_rating=round(avg, 2), review_count=len(matching))

    async def latest(
        self, tmdb_id: int, media_type: str, limit: int = 10
    ) -> list[Review]:
        matching = self._matching(tmdb_id, media_type)
        matching.sort(key=lambda r: r.created_at, reverse=True)
        return matching[:limit]

    async def add(self, review: Review) -> Review:
        self._reviews.append(review)
        return review
