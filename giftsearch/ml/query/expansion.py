"""
Query Expansion
Normalizes gift search queries and generates alternative phrasings from a synonym table.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


# Gift-domain synonym table (word -> synonyms)
GIFT_SYNONYMS: Dict[str, List[str]] = {
    "gift": ["present", "surprise", "treat"],
    "birthday": ["bday", "birth day"],
    "christmas": ["xmas", "holiday", "festive"],
    "anniversary": ["celebration", "milestone"],
    "wedding": ["marriage", "bridal", "nuptial"],
    "mom": ["mother", "mum", "mama"],
    "dad": ["father", "papa"],
    "kids": ["children", "child", "kid"],
    "cheap": ["affordable", "budget", "inexpensive"],
    "expensive": ["luxury", "premium", "high-end"],
    "unique": ["unusual", "special", "one-of-a-kind"],
    "funny": ["humorous", "fun", "amusing"],
    "practical": ["useful", "functional", "handy"],
    "creative": ["artistic", "crafty", "imaginative"],
}

# Keyword families that append a category hint: (trigger keywords, hint)
CATEGORY_HINTS: List[Tuple[Tuple[str, ...], str]] = [
    (("tech", "gadget"), "electronics"),
    (("outdoor", "camping"), "adventure gear"),
]


def normalize_query(query: Optional[str]) -> str:
    """
    Canonical form of a query: lower-cased, trimmed, single-spaced.

    This is also the form used for embedding cache keys.
    """
    if not query:
        return ""
    return " ".join(query.split()).lower()


def tokenize(query: str) -> List[str]:
    """Split a normalized query into word tokens."""
    # Keep alphanumeric, hyphens and apostrophes
    cleaned = re.sub(r"[^\w\s\-\']", " ", query)
    return cleaned.split()


@dataclass
class ExpandedQuery:
    """
    Result of query expansion.

    variants never contain the normalized query itself and never repeat.
    """

    original: str
    normalized: str
    variants: List[str] = field(default_factory=list)
    matched_terms: List[str] = field(default_factory=list)
    synonyms: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "original": self.original,
            "normalized": self.normalized,
            "variants": list(self.variants),
            "matched_terms": list(self.matched_terms),
            "synonyms": list(self.synonyms),
        }


class QueryExpander:
    """
    Builds a bounded set of alternative phrasings for a query.

    - One synonym substituted at a time for every token found in the table
    - Category hint variants for known keyword families
    - Never raises; unmatched queries produce no variants
    """

    def __init__(
        self,
        synonyms: Optional[Dict[str, List[str]]] = None,
        category_hints: Optional[List[Tuple[Tuple[str, ...], str]]] = None,
        max_synonym_variants: int = 3,
    ):
        """
        Initialize query expander.

        Args:
            synonyms: Synonym table (defaults to the gift-domain table)
            category_hints: Keyword families mapped to a category hint
            max_synonym_variants: Maximum number of synonym substitution variants
        """
        self.synonyms = synonyms if synonyms is not None else GIFT_SYNONYMS
        self.category_hints = category_hints if category_hints is not None else CATEGORY_HINTS
        self.max_synonym_variants = max_synonym_variants

    def expand(self, query: str) -> ExpandedQuery:
        """
        Expand a query into alternative phrasings.

        Args:
            query: Raw query text

        Returns:
            ExpandedQuery with variants, matched tokens and contributed synonyms
        """
        normalized = normalize_query(query)
        tokens = tokenize(normalized)

        matched_terms: List[str] = []
        synonyms: List[str] = []
        variants: List[str] = []

        for position, token in enumerate(tokens):
            token_synonyms = self.synonyms.get(token)
            if not token_synonyms:
                continue

            if token not in matched_terms:
                matched_terms.append(token)

            for synonym in token_synonyms:
                if synonym not in synonyms:
                    synonyms.append(synonym)

                if len(variants) >= self.max_synonym_variants:
                    continue

                substituted = " ".join(tokens[:position] + [synonym] + tokens[position + 1 :])
                # Duplicates never take a slot under the cap
                if substituted == normalized or substituted in variants:
                    continue
                variants.append(substituted)

        variants.extend(self._category_variants(normalized))

        expanded = ExpandedQuery(
            original=query,
            normalized=normalized,
            variants=self._dedupe(variants, exclude=normalized),
            matched_terms=matched_terms,
            synonyms=synonyms,
        )

        logger.debug(
            f"Expanded query '{normalized}' -> {len(expanded.variants)} variants "
            f"(matched: {matched_terms})"
        )

        return expanded

    def search_variants(self, expanded: ExpandedQuery, max_variants: int = 2) -> List[str]:
        """
        Queries handed to the lexical leg: the normalized query first, then the first few variants.

        Args:
            expanded: Expansion result
            max_variants: Maximum number of variants to include

        Returns:
            List of query strings, primary query first
        """
        return [expanded.normalized] + expanded.variants[:max_variants]

    def _category_variants(self, normalized: str) -> List[str]:
        """Append a category hint when a keyword family is present in the query."""
        if not normalized:
            return []

        hints = []
        for keywords, hint in self.category_hints:
            if any(keyword in normalized for keyword in keywords):
                hints.append(f"{normalized} {hint}")
        return hints

    @staticmethod
    def _dedupe(variants: List[str], exclude: str) -> List[str]:
        """Remove duplicates (order preserving) and the normalized query itself."""
        seen = set()
        unique = []
        for variant in variants:
            if variant == exclude or variant in seen:
                continue
            seen.add(variant)
            unique.append(variant)
        return unique
