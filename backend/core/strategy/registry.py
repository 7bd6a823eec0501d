"""Scoring profile registry.

Usage:
    register_profile(ScoringProfile(name="my_profile", ...))

    profile = get_profile("my_profile")
    names = list_profiles()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.strategy.profiles import ScoringProfile

logger = logging.getLogger(__name__)

# Global registry: profile_name -> profile
_REGISTRY: dict[str, "ScoringProfile"] = {}


def register_profile(profile: "ScoringProfile") -> "ScoringProfile":
    """Register a scoring profile under its name.

    Returns:
        The profile, unchanged, so module-level constants can be bound.

    Raises:
        ValueError: If a profile with the same name is already registered.
    """
    if profile.name in _REGISTRY:
        raise ValueError(f"Profile '{profile.name}' is already registered")
    _REGISTRY[profile.name] = profile
    logger.debug("Registered scoring profile: %s (%s)", profile.name, profile.gate.value)
    return profile


def get_profile(name: str) -> "ScoringProfile":
    """Get a registered profile by name.

    Raises:
        KeyError: If no profile is registered under the given name.
    """
    profile = _REGISTRY.get(name)
    if profile is None:
        available = ", ".join(sorted(_REGISTRY.keys())) or "(none)"
        raise KeyError(f"Unknown profile '{name}'. Available: {available}")
    return profile


def list_profiles() -> list[str]:
    """Return a sorted list of registered profile names."""
    return sorted(_REGISTRY.keys())
