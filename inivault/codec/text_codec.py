"""
Text Codec - line-oriented section/key format.

    [section]
    key = value

Lines starting with ';' are comments. A key line is split on the first '='
and both sides are trimmed. Lines that cannot be attributed to a section, or
whose key or value trims to empty, are dropped silently.
"""

import logging
import re
from typing import Dict, Iterable, Tuple

from inivault.constants import Framing

logger = logging.getLogger(__name__)

Section = Dict[str, str]
StoreData = Dict[str, Section]

COMMENT_PREFIX = ';'
_LINE_SPLIT = re.compile(r'\r\n|\n|\r')


def serialize(data: StoreData) -> bytes:
    """Serialize a store to UTF-8 bytes in iteration order."""
    parts = []
    for section_name, section in data.items():
        parts.append(f"[{section_name}]\n")
        for key, value in section.items():
            parts.append(f"{key} = {value}\n")
        parts.append("\n")
    return ''.join(parts).encode(Framing.ENCODING)


def match_key(line: str) -> Tuple[str, str]:
    """
    Split a trimmed line into (key, value) on the first '='.

    Returns ('', '') when the line is not a usable key line.
    """
    key, sep, value = line.partition('=')
    if not sep:
        return '', ''
    key = key.strip()
    value = value.strip()
    if not key or not value:
        return '', ''
    return key, value


def parse_lines(lines: Iterable[str]) -> StoreData:
    """Build a store from already-split text lines."""
    data: StoreData = {}
    current = None
    dropped = 0

    for raw in lines:
        line = raw.strip()
        if not line or line.startswith(COMMENT_PREFIX):
            continue

        if line.startswith('[') and line.endswith(']'):
            name = line[1:-1].strip()
            if not name:
                # keys under an unnamed header have nowhere to go
                current = None
                dropped += 1
                continue
            current = data.setdefault(name, {})
            continue

        if current is None:
            dropped += 1
            continue

        key, value = match_key(line)
        if not key:
            dropped += 1
            continue
        current[key] = value

    if dropped:
        logger.debug(f"Dropped {dropped} malformed line(s) while parsing")
    return data


def parse_text(text: str) -> StoreData:
    """Parse already-decoded text into a store."""
    if text.startswith('\ufeff'):
        text = text[1:]
    return parse_lines(_LINE_SPLIT.split(text))


def parse(payload: bytes) -> StoreData:
    """Parse UTF-8 bytes into a store. Undecodable bytes are replaced."""
    return parse_text(payload.decode(Framing.ENCODING, errors='replace'))


__all__ = [
    'Section',
    'StoreData',
    'COMMENT_PREFIX',
    'serialize',
    'parse',
    'parse_text',
    'parse_lines',
    'match_key',
]
