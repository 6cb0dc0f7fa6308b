"""TTL policy for cached upstream responses."""

from typing import Any

from pydantic import BaseModel, Field, ValidationError, model_validator

from flixr.core.config import Settings, load_ttl_config
from flixr.core.exceptions import ConfigurationError


class TTLPolicy(BaseModel):
    """Maps request categories to cache lifetimes.

    Resolution order: explicit per-call override, then the category
    default, then the global default. Whatever is chosen is clamped up to
    ``minimum`` so near-zero TTLs cannot cause a thundering herd.

    Attributes:
        default: Global default TTL in seconds
        minimum: TTL floor in seconds
        categories: Per-category TTLs in seconds
    """

    default: int = Field(default=3600, description="Global default TTL (seconds)", ge=1)
    minimum: int = Field(default=60, description="TTL floor (seconds)", ge=1)
    categories: dict[str, int] = Field(
        default_factory=dict, description="Per-category TTLs (seconds)"
    )

    @model_validator(mode="after")
    def validate_categories(self) -> "TTLPolicy":
        """Reject non-positive category TTLs."""
        for category, seconds in self.categories.items():
            if seconds < 1:
                raise ValueError(f"TTL for category {category!r} must be >= 1")
        return self

    def resolve(self, category: str, override: int | None = None) -> int:
        """Return the effective TTL for one write.

        Args:
            category: Request category tag
            override: Explicit per-call TTL in seconds

        Returns:
            TTL in seconds, never below the floor

        Example:
            >>> policy = TTLPolicy(default=3600, minimum=60, categories={"search": 900})
            >>> policy.resolve("search")
            900
            >>> policy.resolve("raw", override=5)
            60
        """
        if override is not None:
            ttl = override
        elif category in self.categories:
            ttl = self.categories[category]
        else:
            ttl = self.default
        return max(self.minimum, int(ttl))

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "TTLPolicy":
        """Build a policy from a ``load_ttl_config`` dict.

        Raises:
            ConfigurationError: A configured TTL is not a positive integer
        """
        try:
            return cls(
                default=config["default"],
                minimum=config["minimum"],
                categories=dict(config.get("categories", {})),
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid cache TTL configuration: {e}") from e

    @classmethod
    def from_settings(cls, settings: Settings) -> "TTLPolicy":
        """Build the policy from settings plus the optional flixr.yaml."""
        return cls.from_config(load_ttl_config(base=settings))
