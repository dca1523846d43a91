"""
Localization Resolver

Resolves localized catalog fields to the active language.

Fallback chain: exact locale -> "en" -> the literal lookup key.
Never raises and never returns empty text.
"""

from typing import Dict, List, Mapping, Optional, Union

FALLBACK_LOCALE = "en"

# Locale -> language name used when instructing the collaborator
SUPPORTED_LANGUAGES: Dict[str, str] = {
    "sv": "Swedish",
    "en": "English",
    "es": "Spanish",
    "no": "Norwegian",
    "da": "Danish",
    "fi": "Finnish",
}

Localized = Union[str, List[str]]


def _is_present(value) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return len(value) > 0


def resolve(
    localized_map: Optional[Mapping[str, Localized]],
    locale: Optional[str],
    key: str = "",
) -> Localized:
    """
    Resolve a localized field.

    Works for scalar strings (titles, goals) and lists of strings (hints).
    Empty values count as missing and fall through the chain.

    Args:
        localized_map: Mapping of locale -> text (may be None)
        locale: Requested locale
        key: Lookup key returned when neither locale nor "en" has a value

    Returns:
        The resolved text, or ``key`` (``[key]`` for list-valued fields)
    """
    localized_map = localized_map or {}

    for candidate in (locale, FALLBACK_LOCALE):
        if candidate is None:
            continue
        value = localized_map.get(candidate)
        if _is_present(value):
            return value if isinstance(value, str) else list(value)

    # Literal key; "?" keeps the result non-empty when no key was given
    literal = key or "?"
    sample = next(iter(localized_map.values()), None)
    if isinstance(sample, (list, tuple)):
        return [literal]
    return literal


def resolve_list(
    localized_map: Optional[Mapping[str, List[str]]],
    locale: Optional[str],
    key: str = "",
) -> List[str]:
    """Resolve a list-valued field (hints); always returns a non-empty list."""
    value = resolve(localized_map, locale, key)
    return value if isinstance(value, list) else [value]


def language_name(locale: Optional[str]) -> str:
    """English name of a locale, falling back to English."""
    return SUPPORTED_LANGUAGES.get(locale or FALLBACK_LOCALE, SUPPORTED_LANGUAGES[FALLBACK_LOCALE])
