"""Built-in removal profiles."""

from __future__ import annotations

from lethe.models.config import RemovalOptions

_BUILTIN_PROFILES: dict[str, RemovalOptions] = {
    "quick-clean": RemovalOptions(tool_removal=100, tool_mode="remove", thinking_removal=100),
    "heavy-trim": RemovalOptions(tool_removal=100, tool_mode="truncate", thinking_removal=100),
    "preserve-recent": RemovalOptions(tool_removal=80, tool_mode="remove", thinking_removal=100),
    "light-trim": RemovalOptions(tool_removal=50, tool_mode="truncate", thinking_removal=100),
}


def get_builtin_profiles() -> dict[str, RemovalOptions]:
    """Every built-in profile by name. The returned dict is a copy."""
    return {name: options.model_copy() for name, options in _BUILTIN_PROFILES.items()}


def get_profile(name: str) -> RemovalOptions | None:
    """The named profile, or None if there is no such profile."""
    options = _BUILTIN_PROFILES.get(name)
    return options.model_copy() if options is not None else None
