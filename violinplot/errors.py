from __future__ import annotations

from typing import Optional


class ViolinError(ValueError):
    """Base class for every error raised while building a violin plot."""


class ShapeError(ViolinError):
    """Input data cannot be interpreted as a list of groups."""


class ConfigError(ViolinError):
    """Conflicting or mismatched plot options."""


class EmptyGroupError(ViolinError):
    def __init__(self, group_index: int, label: Optional[str] = None) -> None:
        self.group_index = group_index
        self.label = label
        name = f"'{label}'" if label else str(group_index)
        super().__init__(f"Group {name} has no finite samples.")
