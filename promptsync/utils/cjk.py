"""
CJK character detection utilities.

Used to decide which side of a tag a translation hint belongs to.
"""

import re


class CJKDetector:
    """CJK character detection over a configured pattern."""

    def __init__(self, cjk_pattern: re.Pattern[str]):
        self._cjk_pattern = cjk_pattern

    def has_cjk_characters(self, text: str) -> bool:
        return bool(self._cjk_pattern.search(text))

    def is_translation_side(self, hint: str) -> bool:
        """A hint containing CJK text fills the translation; anything else is the English form."""
        return self.has_cjk_characters(hint)
