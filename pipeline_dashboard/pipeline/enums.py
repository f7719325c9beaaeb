"""
Canonical enums for pipeline reports.
"""

from enum import Enum

from ..errors import ValidationError


class ResourceType(str, Enum):
    """Kinds of pipeline step whose configuration is catalogued."""

    SOURCE = "source"
    CONDITION = "condition"
    TARGET = "target"

    @property
    def plural(self) -> str:
        return f"{self.value}s"

    @property
    def mapping_field(self) -> str:
        """Report column mapping catalog ids of this type to step names."""
        return f"{self.value}_config_ids"

    @classmethod
    def from_value(cls, value: str) -> "ResourceType":
        """Accept either the singular or the plural name."""
        normalized = (value or "").strip().lower()
        for member in cls:
            if normalized in (member.value, member.plural):
                return member
        raise ValidationError(
            f"unknown config resource type {value!r}, expected one of "
            + ", ".join(member.value for member in cls)
        )


# Scm filter values meaning "reports with no repository associated"
NO_SCM_SENTINELS = frozenset({"none", "null", "nil"})
