"""Address display helpers."""

import re
from typing import Final

_WORD_PATTERN: Final = re.compile(r"\w\S*")
_MINOR_WORDS: Final = ("And", "The", "Of", "To")
_PLACEHOLDER_ADDRESSES: Final = frozenset({"No records found", "Search failed..."})


def _title_word(match: re.Match[str]) -> str:
    word = match.group(0)
    if word[0].isdigit():
        return word.upper()
    return word[0].upper() + word[1:].lower()


def address_to_title_case(address: str | None, postcode: str | None) -> str | None:
    """Convert an upper-case gazetteer address to title case.

    The postcode is removed before casing and re-appended verbatim when the
    address contained it. Words starting with a digit (``12A``) stay upper case
    and short joining words are lower-cased.

    Examples:
        >>> address_to_title_case("12A THE HIGH STREET, ANYTOWN AB1 2CD", "AB1 2CD")
        '12A the High Street, Anytown AB1 2CD'
    """
    if not address:
        return None
    if address in _PLACEHOLDER_ADDRESSES:
        return address

    body = address.replace(postcode, "", 1) if postcode else address
    titled = _WORD_PATTERN.sub(_title_word, body)
    for word in _MINOR_WORDS:
        titled = titled.replace(f" {word} ", f" {word.lower()} ")

    if postcode and postcode in address:
        return titled + postcode
    return titled
