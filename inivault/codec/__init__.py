"""
Codecs for the inivault on-disk format.

- text_codec: store <-> section/key text
- integrity: SHA-256 checksum trailer
"""

from .text_codec import StoreData, serialize, parse, parse_text, match_key
from .integrity import IntegrityCodec, ChecksumResult, compute_checksum

__all__ = [
    'StoreData',
    'serialize',
    'parse',
    'parse_text',
    'match_key',
    'IntegrityCodec',
    'ChecksumResult',
    'compute_checksum',
]
