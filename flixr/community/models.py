"""Community review models."""

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, Field


class Review(BaseModel):
    """A user-written review of a movie or TV show.

    Attributes:
        id: Review identifier
        user_id: Author identifier
        tmdb_id: Provider id of the reviewed title
        media_type: "movie" or "tv"
        rating: Score from 0 to 10
        content: Review text
        created_at: Creation time (UTC)
    """

    id: str = Field(default_factory=lambda: str(uuid4()), description="Review ID")
    user_id: str = Field(..., description="Author ID")
    tmdb_id: int = Field(..., description="Provider title ID", ge=1)
    media_type: str = Field(..., description="movie or tv", pattern="^(movie|tv)$")
    rating: float = Field(..., description="Rating (0-10)", ge=0.0, le=10.0)
    content: str = Field(..., description="Review text", min_length=1)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp",
    )


class CommunityStats(BaseModel):
    """Aggregate rating for one title."""

    avg_rating: float = Field(default=0.0, description="Mean rating, 2 decimals")
    review_count: int = Field(default=0, description="Number of reviews", ge=0)
