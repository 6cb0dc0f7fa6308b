"""Upstream (TMDB v3) path builders.

Functions here only produce upstream-relative paths. They never include
the base URL or the API credential; those are added by the upstream
client on every call.
"""

from typing import Literal
from urllib.parse import quote

MediaType = Literal["movie", "tv"]
TimeWindow = Literal["day", "week"]

TIME_WINDOWS: tuple[str, ...] = ("day", "week")

# Listing endpoints per media type (/{media_type}/{listing})
MOVIE_LISTINGS = frozenset({"popular", "top_rated", "now_playing", "upcoming"})
TV_LISTINGS = frozenset({"popular", "top_rated", "on_the_air", "airing_today"})

# Sub-resources of a single title (/{media_type}/{id}/{resource})
TITLE_RESOURCES = frozenset(
    {
        "credits",
        "videos",
        "images",
        "similar",
        "recommendations",
        "reviews",
        "external_ids",
        "keywords",
        "translations",
        "watch/providers",
    }
)

PERSON_RESOURCES = frozenset({"combined_credits", "images", "external_ids"})
COMPANY_RESOURCES = frozenset({"alternative_names", "images"})

SEARCH_MULTI = "/search/multi"
CONFIGURATION = "/configuration"


def search(scope: str = "multi") -> str:
    """Search endpoint: multi, movie, tv or person."""
    return f"/search/{scope}"


def details(media_type: str, item_id: int | str) -> str:
    """Single movie or TV show."""
    return f"/{media_type}/{item_id}"


def title_resource(media_type: str, item_id: int | str, resource: str) -> str:
    """Sub-resource of a movie or TV show (credits, videos, reviews, ...)."""
    if resource not in TITLE_RESOURCES:
        raise ValueError(f"Unknown title resource: {resource}")
    return f"/{media_type}/{item_id}/{resource}"


def listing(media_type: str, name: str) -> str:
    """Curated listing such as /movie/popular or /tv/airing_today."""
    allowed = MOVIE_LISTINGS if media_type == "movie" else TV_LISTINGS
    if name not in allowed:
        raise ValueError(f"Unknown {media_type} listing: {name}")
    return f"/{media_type}/{name}"


def popular(media_type: str) -> str:
    return listing(media_type, "popular")


def discover(media_type: str) -> str:
    return f"/discover/{media_type}"


def genre_list(media_type: str) -> str:
    return f"/genre/{media_type}/list"


def trending(scope: str = "all", time_window: str = "day") -> str:
    """Trending titles for all, movie or tv over a day or week window."""
    if time_window not in TIME_WINDOWS:
        raise ValueError(f"time_window must be one of {TIME_WINDOWS}")
    return f"/trending/{scope}/{time_window}"


def tv_season(tv_id: int | str, season_number: int | str) -> str:
    return f"/tv/{tv_id}/season/{season_number}"


def tv_episode(
    tv_id: int | str, season_number: int | str, episode_number: int | str
) -> str:
    return f"/tv/{tv_id}/season/{season_number}/episode/{episode_number}"


def person(person_id: int | str, resource: str | None = None) -> str:
    """Person details, or one of their sub-resources."""
    if resource is None:
        return f"/person/{person_id}"
    if resource not in PERSON_RESOURCES:
        raise ValueError(f"Unknown person resource: {resource}")
    return f"/person/{person_id}/{resource}"


def popular_people() -> str:
    return "/person/popular"


def company(company_id: int | str, resource: str | None = None) -> str:
    """Company details, or one of its sub-resources."""
    if resource is None:
        return f"/company/{company_id}"
    if resource not in COMPANY_RESOURCES:
        raise ValueError(f"Unknown company resource: {resource}")
    return f"/company/{company_id}/{resource}"


def find(external_id: str) -> str:
    """Lookup by external id; pass ``external_source`` as a query parameter."""
    return f"/find/{quote(external_id, safe='')}"
