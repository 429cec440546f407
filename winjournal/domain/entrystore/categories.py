"""Closed category set plus the `all` filter pseudo-category."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from ...config import CategoryConfig
from ..errors import InvalidCategoryError

ALL_CATEGORIES = "all"


@dataclass(frozen=True)
class CategorySet:
    labels: Tuple[str, ...]
    default: str

    def __post_init__(self) -> None:
        if ALL_CATEGORIES in self.labels:
            raise ValueError(f"'{ALL_CATEGORIES}' is reserved for filtering")
        if self.default not in self.labels:
            raise ValueError(f"default category {self.default!r} is not a label")

    @classmethod
    def from_config(cls, config: CategoryConfig) -> "CategorySet":
        return cls(labels=tuple(config.labels), default=config.default)

    @classmethod
    def of(cls, labels: Iterable[str], default: str) -> "CategorySet":
        return cls(labels=tuple(labels), default=default)

    def __contains__(self, label: object) -> bool:
        return label in self.labels

    def resolve(self, category: Optional[str]) -> str:
        """Return the storable label for ``category`` (fallback when blank)."""

        normalized = (category or "").strip().lower()
        if not normalized:
            return self.default
        if normalized not in self.labels:
            raise InvalidCategoryError(
                f"Unknown category {category!r}",
                details={"allowed": list(self.labels)},
            )
        return normalized

    def resolve_filter(self, category: Optional[str]) -> Optional[str]:
        """Return the label to filter on, or ``None`` for the `all` filter."""

        normalized = (category or ALL_CATEGORIES).strip().lower()
        if normalized == ALL_CATEGORIES:
            return None
        if normalized not in self.labels:
            raise InvalidCategoryError(
                f"Unknown category filter {category!r}",
                details={"allowed": [ALL_CATEGORIES, *self.labels]},
            )
        return normalized


DEFAULT_CATEGORY_SET = CategorySet.from_config(CategoryConfig())
