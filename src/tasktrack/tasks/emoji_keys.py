# src/tasktrack/tasks/emoji_keys.py

"""
Emoji key normalization.

States are stored by shortcode ("eyes", "rocket"). Matrix clients send the
glyph itself, sometimes with a variation selector or a skin tone, and
operators may configure a shortcode, a ":shortcode:" or a glyph. Every one
of those forms is reduced to the same shortcode before it is stored or
looked up.
"""

from __future__ import annotations

import unicodedata

import emoji

_LANGUAGE = "alias"


def _strip_skin_tones(value: str) -> str:
    value = unicodedata.normalize("NFKC", value).strip()
    return "".join(ch for ch in value if not ("\U0001f3fb" <= ch <= "\U0001f3ff"))


def _strip_selectors(value: str) -> str:
    return value.replace("\ufe0f", "").replace("\ufe0e", "")


def _shortcode(glyph: str) -> str | None:
    text = emoji.demojize(glyph, language=_LANGUAGE)
    if text != glyph and text.startswith(":") and text.endswith(":") and text.count(":") == 2:
        return text[1:-1]
    return None


def normalize_key(key: str | None) -> str:
    """
    '👀', '👀\\ufe0f', ':eyes:' and 'eyes' all become 'eyes'.

    Names without a known glyph (custom keys) are kept as-is, minus colons.
    """
    value = _strip_skin_tones(str(key or ""))
    if not value:
        return ""

    # Fully-qualified glyphs carry U+FE0F; some clients drop it.
    name = _shortcode(value) or _shortcode(_strip_selectors(value))
    if name is not None:
        return name
    value = _strip_selectors(value)

    if value.isascii():
        bare = value.strip(":")
        glyph = emoji.emojize(f":{bare}:", language=_LANGUAGE)
        if glyph != f":{bare}:":
            return _shortcode(glyph) or bare
        return bare

    return value


def display(name: str) -> str:
    """Glyph for a stored shortcode, or ':name:' when there is none."""
    text = f":{name}:"
    glyph = emoji.emojize(text, language=_LANGUAGE)
    return glyph if glyph != text else text
