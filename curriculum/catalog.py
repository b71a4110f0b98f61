"""
Concept Catalog

Static table of the math concepts the tutor can detect and sequence:
detection patterns, category, prerequisites, difficulty, the problem kinds
used to practise each one, goal aliases and related concepts.

Pure data plus read-only lookups; safe to share without locking.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Literal, Optional, Pattern, Tuple

from tutor.models.messages import ProblemType


Difficulty = Literal["elementary", "middle school", "high school", "advanced"]

DIFFICULTY_LEVELS = ("elementary", "middle school", "high school", "advanced")

DEFAULT_GOAL_CONCEPTS = ("fractions", "area_rectangle", "linear_equations")


def format_concept_name(concept_id: str) -> str:
    """linear_equations -> Linear Equations"""
    return " ".join(word.capitalize() for word in concept_id.split("_"))


@dataclass(frozen=True)
class ConceptDefinition:
    concept_id: str
    category: str
    patterns: Tuple[Pattern, ...]
    prerequisites: Tuple[str, ...] = ()
    difficulty: Difficulty = "middle school"
    problem_kinds: Tuple[ProblemType, ...] = ("algebra",)
    aliases: Tuple[str, ...] = ()
    related: Tuple[str, ...] = ()
    name: str = field(default="")

    def __post_init__(self):
        if not self.name:
            object.__setattr__(self, "name", format_concept_name(self.concept_id))

    @property
    def default_problem_kind(self) -> ProblemType:
        return self.problem_kinds[0] if self.problem_kinds else "algebra"

    def matches(self, text: str) -> bool:
        return any(pattern.search(text) for pattern in self.patterns)

    def goal_terms(self) -> Tuple[str, ...]:
        return (self.concept_id, self.name.lower()) + tuple(a.lower() for a in self.aliases)


def _patterns(*sources: str) -> Tuple[Pattern, ...]:
    return tuple(re.compile(source, re.IGNORECASE) for source in sources)


def _concept(concept_id: str, category: str, patterns: Iterable[str], **kwargs) -> ConceptDefinition:
    return ConceptDefinition(
        concept_id=concept_id,
        category=category,
        patterns=_patterns(*patterns),
        **{k: tuple(v) if isinstance(v, list) else v for k, v in kwargs.items()},
    )


# Order matters: detection and goal matching walk the catalog in this order.
DEFAULT_CONCEPTS: List[ConceptDefinition] = [
    _concept(
        "linear_equations", "algebra",
        [
            r"ax\s*[+\-]\s*b\s*=\s*c",
            r"solve\s+for\s+x",
            r"isolate\s+the\s+variable",
            r"\d+x\s*[+\-]?\s*\d+\s*=\s*\d+",
        ],
        prerequisites=["fractions", "decimals"],
        difficulty="middle school",
        problem_kinds=["algebra", "word_problem"],
        aliases=["algebra", "equation", "linear equation"],
        related=["slope", "factoring"],
    ),
    _concept(
        "quadratic_equations", "algebra",
        [
            r"x\^2|x²|x\*\*2|quadratic|ax\^2|ax²",
            r"quadratic\s+formula",
        ],
        prerequisites=["linear_equations", "factoring", "exponents"],
        difficulty="high school",
        problem_kinds=["algebra", "multi_step"],
        aliases=["quadratic"],
        related=["factoring", "roots"],
    ),
    _concept(
        "factoring", "algebra",
        [
            r"factoring|factor|gcf|greatest\s+common\s+factor",
            r"\(x\s*[+\-]\s*\d+\)\s*\(",
        ],
        prerequisites=["linear_equations", "exponents"],
        difficulty="middle school",
        problem_kinds=["algebra"],
        aliases=["algebra", "factorise", "factorize"],
        related=["exponents"],
    ),
    _concept(
        "pythagorean_theorem", "geometry",
        [
            r"pythagorean|a\^2\s*\+\s*b\^2|c\^2|hypotenuse",
            r"right\s+triangle|right\s+angle",
        ],
        prerequisites=["area_triangle", "exponents"],
        difficulty="middle school",
        problem_kinds=["geometry", "word_problem"],
        aliases=["geometry", "triangle", "pythagoras", "hypotenuse"],
        related=["roots", "angles"],
    ),
    _concept(
        "area_circle", "geometry",
        [
            r"area\s+of\s+(a\s+)?circle",
            r"πr\^2|πr²|pi\s*r\s*\^2",
            r"radius.*area|area.*radius",
        ],
        prerequisites=["area_rectangle", "decimals"],
        difficulty="middle school",
        problem_kinds=["geometry"],
        aliases=["geometry", "circle"],
        related=["perimeter"],
    ),
    _concept(
        "area_triangle", "geometry",
        [
            r"area\s+of\s+(a\s+)?triangle",
            r"(1/2|0\.5)\s*\*\s*base\s*\*\s*height|base\s*\*\s*height\s*/\s*2",
        ],
        prerequisites=["area_rectangle"],
        difficulty="elementary",
        problem_kinds=["geometry"],
        aliases=["geometry", "triangle"],
        related=["area_rectangle", "angles"],
    ),
    _concept(
        "area_rectangle", "geometry",
        [
            r"area\s+of\s+(a\s+)?(rectangle|square|rect)",
            r"length\s*\*\s*width|width\s*\*\s*length",
        ],
        difficulty="elementary",
        problem_kinds=["geometry"],
        aliases=["rectangle"],
        related=["perimeter", "volume"],
    ),
    _concept(
        "perimeter", "geometry",
        [
            r"perimeter|circumference",
            r"sum\s+of\s+(the\s+)?(sides|all\s+sides)",
        ],
        difficulty="elementary",
        problem_kinds=["geometry"],
        aliases=["circumference"],
    ),
    _concept(
        "angles", "geometry",
        [
            r"angle|degrees?|°|radians?",
            r"supplementary|complementary|vertical\s+angles",
        ],
        prerequisites=["perimeter"],
        difficulty="middle school",
        problem_kinds=["geometry"],
        aliases=["angle"],
    ),
    _concept(
        "fractions", "arithmetic",
        [
            r"\d+/\d+|fraction",
            r"numerator|denominator",
        ],
        difficulty="elementary",
        problem_kinds=["arithmetic"],
        aliases=["fraction"],
        related=["decimals", "ratios"],
    ),
    _concept(
        "decimals", "arithmetic",
        [
            r"\d+\.\d+",
            r"decimal",
        ],
        prerequisites=["fractions"],
        difficulty="elementary",
        problem_kinds=["arithmetic"],
        aliases=["decimal"],
        related=["percentages"],
    ),
    _concept(
        "percentages", "arithmetic",
        [
            r"percent|%|percentage",
            r"discount|tax|tip|interest",
        ],
        prerequisites=["fractions", "decimals"],
        difficulty="middle school",
        problem_kinds=["arithmetic", "word_problem"],
        aliases=["percent", "percentage"],
        related=["ratios"],
    ),
    _concept(
        "ratios", "arithmetic",
        [
            r"ratio|proportion",
            r"\d+\s*:\s*\d+",
            r"scale|scaling",
        ],
        prerequisites=["fractions"],
        difficulty="middle school",
        problem_kinds=["arithmetic", "word_problem"],
        aliases=["ratio", "proportion"],
    ),
    _concept(
        "exponents", "algebra",
        [
            r"x\^n|x\^2|x\^3|exponent|power",
            r"\d+\^\d+",
            r"squared|cubed",
        ],
        prerequisites=["fractions"],
        difficulty="middle school",
        problem_kinds=["algebra"],
        aliases=["exponent", "power"],
        related=["roots"],
    ),
    _concept(
        "roots", "algebra",
        [
            r"√|square\s+root|sqrt|cube\s+root",
            r"radical",
        ],
        prerequisites=["exponents"],
        difficulty="high school",
        problem_kinds=["algebra"],
        aliases=["square root", "radical"],
    ),
    _concept(
        "slope", "algebra",
        [
            r"slope|y\s*=\s*mx\s*\+\s*b|linear\s+function",
            r"rise\s+over\s+run|m\s*=\s*\(y2\s*-\s*y1\)",
        ],
        prerequisites=["linear_equations"],
        difficulty="high school",
        problem_kinds=["algebra"],
        aliases=["gradient", "linear function"],
        related=["ratios"],
    ),
    _concept(
        "volume", "geometry",
        [
            r"volume\s+of",
            r"cubic|cube|length\s*\*\s*width\s*\*\s*height",
        ],
        prerequisites=["area_rectangle"],
        difficulty="middle school",
        problem_kinds=["geometry"],
        aliases=["volume"],
        related=["area_rectangle"],
    ),
]


class ConceptCatalog:
    """Ordered, read-only view over a list of concept definitions."""

    def __init__(self, definitions: Iterable[ConceptDefinition]):
        self._definitions: List[ConceptDefinition] = list(definitions)
        self._by_id: Dict[str, ConceptDefinition] = {d.concept_id: d for d in self._definitions}

    def __contains__(self, concept_id: object) -> bool:
        return concept_id in self._by_id

    def __iter__(self):
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    @property
    def concept_ids(self) -> List[str]:
        return [d.concept_id for d in self._definitions]

    def get(self, concept_id: str) -> Optional[ConceptDefinition]:
        return self._by_id.get(concept_id)

    def name_for(self, concept_id: str) -> str:
        definition = self.get(concept_id)
        return definition.name if definition else format_concept_name(concept_id)

    def category_for(self, concept_id: str) -> str:
        definition = self.get(concept_id)
        return definition.category if definition else "general"

    def prerequisites_of(self, concept_id: str) -> Tuple[str, ...]:
        definition = self.get(concept_id)
        return definition.prerequisites if definition else ()

    def related_to(self, concept_id: str) -> List[str]:
        """Declared related concepts plus every concept that declares this one (symmetric closure)."""
        definition = self.get(concept_id)
        if definition is None:
            return []
        related = set(definition.related)
        related.update(d.concept_id for d in self._definitions if concept_id in d.related)
        related.discard(concept_id)
        return [cid for cid in self.concept_ids if cid in related]

    def match_goal(self, goal: str) -> List[str]:
        """Concepts whose id, name, alias or difficulty level appears in the goal text."""
        text = goal.lower()
        matched: List[str] = []
        for definition in self._definitions:
            terms = definition.goal_terms()
            hit = any(re.search(rf"\b{re.escape(term)}(?:s|es)?\b", text) for term in terms)
            if hit or definition.difficulty in text:
                matched.append(definition.concept_id)
        return matched


CONCEPT_CATALOG = ConceptCatalog(DEFAULT_CONCEPTS)
