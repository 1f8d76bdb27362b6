"""Case and number conversions for generated identifiers."""

from __future__ import annotations

import re

_WORD_SPLIT = re.compile(r"[\s_\-]+")
_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")

# irregular plurals that show up in this domain
_IRREGULAR = {
    "person": "people",
    "child": "children",
    "staff": "staff",
    "series": "series",
}
_IRREGULAR_SINGULAR = {v: k for k, v in _IRREGULAR.items()}


def words(s: str) -> list[str]:
    """Split any of snake_case, kebab-case, camelCase, PascalCase or spaced text into lower-case words."""
    s = _CAMEL_BOUNDARY.sub(r"\1 \2", s.strip())
    return [w.lower() for w in _WORD_SPLIT.split(s) if w]


def snake_case(s: str) -> str:
    return "_".join(words(s))


def kebab_case(s: str) -> str:
    return "-".join(words(s))


def pascal_case(s: str) -> str:
    return "".join(w.capitalize() for w in words(s))


def camel_case(s: str) -> str:
    parts = words(s)
    if not parts:
        return ""
    return parts[0] + "".join(w.capitalize() for w in parts[1:])


def upper_snake(s: str) -> str:
    return snake_case(s).upper()


def humanize(s: str) -> str:
    """Sentence-case label: maxTravelDistance -> Max travel distance."""
    return " ".join(words(s)).capitalize()


def _pluralize_word(word: str) -> str:
    if word in _IRREGULAR:
        return _IRREGULAR[word]
    if word in _IRREGULAR_SINGULAR:
        return word
    if word.endswith("y") and not word.endswith(("ay", "ey", "iy", "oy", "uy")):
        return word[:-1] + "ies"
    if word.endswith(("s", "x", "z", "ch", "sh")):
        return word + "es"
    return word + "s"


def _singularize_word(word: str) -> str:
    if word in _IRREGULAR_SINGULAR:
        return _IRREGULAR_SINGULAR[word]
    if word in _IRREGULAR:
        return word
    if word.endswith("ies") and len(word) > 3:
        return word[:-3] + "y"
    if word.endswith(("sses", "uses", "xes", "zes", "ches", "shes")):
        return word[:-2]
    if word.endswith("s") and not word.endswith(("ss", "us", "is")):
        return word[:-1]
    return word


def pluralize(s: str) -> str:
    """Pluralize the last word, keeping snake_case: "therapy_goal" -> "therapy_goals"."""
    parts = words(s)
    if not parts:
        return s
    parts[-1] = _pluralize_word(parts[-1])
    return "_".join(parts)


def singularize(s: str) -> str:
    parts = words(s)
    if not parts:
        return s
    parts[-1] = _singularize_word(parts[-1])
    return "_".join(parts)
