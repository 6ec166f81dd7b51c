"""
Item Filtering
Category and price filters shared by the lexical and vector legs.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional

logger = logging.getLogger(__name__)


class FilterOperator(Enum):
    """Comparison operators for filters."""

    EQ = "="
    GTE = ">="
    LTE = "<="


@dataclass
class ItemFilter:
    """
    Single filter condition on an item field.

    Example:
        ItemFilter("price", FilterOperator.LTE, 100.0)  # price <= 100
    """

    field: str
    operator: FilterOperator
    value: Any

    def matches(self, actual: Any) -> bool:
        """Evaluate the condition against an in-memory value (missing values never match)."""
        if actual is None:
            return False

        if self.operator == FilterOperator.EQ:
            return actual == self.value
        if self.operator == FilterOperator.GTE:
            return actual >= self.value
        return actual <= self.value

    def to_clause(self, column):
        """Convert to a SQLAlchemy boolean clause on the given column."""
        if self.operator == FilterOperator.EQ:
            return column == self.value
        if self.operator == FilterOperator.GTE:
            return column >= self.value
        return column <= self.value


@dataclass
class SearchFilters:
    """
    Pass-through filters applied by both retrieval legs.

    All fields are optional; an empty SearchFilters matches everything.
    """

    category: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None

    def build_filters(self) -> List[ItemFilter]:
        """
        Build list of ItemFilter objects from this config.

        Returns:
            List of ItemFilter objects
        """
        filters = []

        if self.category is not None:
            filters.append(ItemFilter("category", FilterOperator.EQ, self.category))
        if self.min_price is not None:
            filters.append(ItemFilter("price", FilterOperator.GTE, self.min_price))
        if self.max_price is not None:
            filters.append(ItemFilter("price", FilterOperator.LTE, self.max_price))

        return filters

    @property
    def is_empty(self) -> bool:
        return not self.build_filters()

    def matches(self, item: Any) -> bool:
        """
        Check an in-memory item (anything with category/price attributes).

        Args:
            item: Object exposing the filtered fields as attributes

        Returns:
            True if every condition holds
        """
        return all(f.matches(getattr(item, f.field, None)) for f in self.build_filters())

    def apply(self, query, model):
        """
        Add WHERE conditions to a SQLAlchemy query.

        Args:
            query: SQLAlchemy Query
            model: ORM model exposing category and price columns

        Returns:
            Filtered query
        """
        for f in self.build_filters():
            query = query.filter(f.to_clause(getattr(model, f.field)))
        return query

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "min_price": self.min_price,
            "max_price": self.max_price,
        }
