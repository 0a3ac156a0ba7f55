"""Tier configuration - defines the hierarchy ceiling for each subscription tier."""

from dataclasses import dataclass

from app.roles.exceptions import ConfigurationError


@dataclass(frozen=True)
class TierPolicy:
    """Configuration for a subscription tier."""

    tier: str
    display_name: str
    rank: int  # Ordering used by tier-gated permissions (BASIC < PRO < ENTERPRISE)
    max_hierarchy: int  # Highest project-role hierarchy an assignment may carry

    def at_least(self, other: "TierPolicy") -> bool:
        """Return True if this tier is the same as or above `other`."""
        return self.rank >= other.rank


TIERS: dict[str, TierPolicy] = {
    "BASIC": TierPolicy(
        tier="BASIC",
        display_name="Basic",
        rank=1,
        max_hierarchy=40,
    ),
    "PRO": TierPolicy(
        tier="PRO",
        display_name="Pro",
        rank=2,
        max_hierarchy=80,
    ),
    "ENTERPRISE": TierPolicy(
        tier="ENTERPRISE",
        display_name="Enterprise",
        rank=3,
        max_hierarchy=100,
    ),
}

# Licensing website stores license types in lower case and under older names
LEGACY_TIER_MAP: dict[str, str] = {
    "basic": "BASIC",
    "pro": "PRO",
    "professional": "PRO",
    "enterprise": "ENTERPRISE",
}


def get_tier_policy(tier: "str | TierPolicy") -> TierPolicy:
    """
    Get tier policy by tier name.

    Unlike plan lookup, unknown tiers are never defaulted: a tier that is not
    in the table is a deployment bug and raises ConfigurationError.
    """
    if isinstance(tier, TierPolicy):
        return tier

    if not isinstance(tier, str):
        raise ConfigurationError(f"Tier must be a string, got {type(tier).__name__}")

    key = LEGACY_TIER_MAP.get(tier, tier.upper())
    policy = TIERS.get(key)
    if policy is None:
        raise ConfigurationError(
            f"Unknown tier '{tier}'. Valid tiers: {sorted(TIERS)}",
            key=tier,
        )
    return policy


def validate_tiers() -> None:
    """Check the tier table for internal consistency. Raises ConfigurationError."""
    ranks = [policy.rank for policy in TIERS.values()]
    if len(set(ranks)) != len(ranks):
        raise ConfigurationError("Tier ranks must be unique")

    for key, policy in TIERS.items():
        if key != policy.tier:
            raise ConfigurationError(f"Tier key '{key}' does not match policy '{policy.tier}'")
        if not 1 <= policy.max_hierarchy <= 100:
            raise ConfigurationError(
                f"Tier '{key}' max_hierarchy {policy.max_hierarchy} outside 1-100",
                key=key,
            )
