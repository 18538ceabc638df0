"""Internationalized text entries.

An entry maps locale tags to text. ``en_US`` is always required; other
tags follow ``<lang>_<Region>`` (e.g. ``zh_Hans``, ``ja_JP``) with the
second segment capitalized.
"""

from typing import Annotated, Any, TypeAlias

from pydantic import BeforeValidator

DEFAULT_LOCALE = "en_US"


def is_valid_locale(locale: str) -> bool:
    """Return True for tags of the form <lang>_<Region>."""
    parts = locale.split("_")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        return False
    return parts[1][0] == parts[1][0].upper()


def validate_i18n_text(value: Any) -> dict[str, str]:
    """Validate an i18n entry.

    Raises:
        ValueError: If value is not a dict, lacks en_US, has a non-string
            text, or has a malformed locale tag.
    """
    if not isinstance(value, dict):
        msg = "i18n text must be an object of locale to text"
        raise ValueError(msg)
    if DEFAULT_LOCALE not in value:
        msg = f"i18n text requires the '{DEFAULT_LOCALE}' locale"
        raise ValueError(msg)
    for locale, text in value.items():
        if not isinstance(locale, str) or not is_valid_locale(locale):
            msg = f"invalid locale '{locale}', expected <lang>_<Region>"
            raise ValueError(msg)
        if not isinstance(text, str):
            msg = f"text for locale '{locale}' must be a string"
            raise ValueError(msg)
    return dict(value)


I18nText: TypeAlias = Annotated[dict[str, str], BeforeValidator(validate_i18n_text)]


def get_default_text(text: dict[str, str], locale: str = DEFAULT_LOCALE) -> str:
    """Return the text for a locale.

    Args:
        text: A validated i18n entry.
        locale: Locale tag to look up.

    Raises:
        KeyError: If the entry has no text for the locale.
    """
    if locale not in text:
        msg = f"i18n text has no '{locale}' entry"
        raise KeyError(msg)
    return text[locale]
