"""
Encoding Normalizer

The ACC server writes its JSON in whatever encoding the host happens to
use (UTF-16LE without BOM is the common case, UTF-8 with BOM shows up too)
and some exports repeat keys. Everything downstream works on the canonical
form produced here: compact JSON text, duplicate keys collapsed with the
last occurrence winning.

Usage:
    from acc_leaderboard.importers.encoding import bytes_to_json_text

    text = bytes_to_json_text(Path('231014_201502_R.json').read_bytes())
"""

import codecs
import json
from typing import List, Optional, Tuple

from ..errors import EncodingError, MalformedJson

UTF8 = 'utf-8'
UTF16_LE = 'utf-16-le'
UTF16_BE = 'utf-16-be'

BOMS = (
    (codecs.BOM_UTF8, UTF8),
    (codecs.BOM_UTF16_LE, UTF16_LE),
    (codecs.BOM_UTF16_BE, UTF16_BE),
)

# Share of the buffer that has to be NUL-pattern chunks before UTF-16 is assumed
NUL_CHUNK_THRESHOLD = 0.45

FALLBACK_ORDER = (UTF16_LE, UTF16_BE, UTF8)


def dedup_json(text: str) -> str:
    """Parse and re-serialize, collapsing duplicate keys (last one wins)"""
    value = json.loads(text)
    return json.dumps(value, ensure_ascii=False, separators=(',', ':'))


def count_nul_chunks(data: bytes) -> Tuple[int, int]:
    """
    Count 2-byte chunks with a NUL high byte and with a NUL low byte

    An odd trailing byte is not a chunk. `00 00` counts for both.

    Returns:
        (big_endian_nuls, little_endian_nuls)
    """
    be_nuls = 0
    le_nuls = 0
    for i in range(0, len(data) - 1, 2):
        if data[i] == 0:
            be_nuls += 1
        if data[i + 1] == 0:
            le_nuls += 1
    return be_nuls, le_nuls


def _try_conversion(data: bytes, encoding: str) -> Tuple[Optional[str], bool]:
    """
    Decode and canonicalize with one encoding

    Returns:
        (json_text or None, whether the bytes decoded at all)
    """
    try:
        text = data.decode(encoding)
    except UnicodeDecodeError:
        return None, False
    try:
        return dedup_json(text), True
    except ValueError:
        return None, True


def _candidate_encodings(data: bytes) -> List[str]:
    """Encodings to try for a buffer without BOM, most likely first"""
    candidates = []
    be_nuls, le_nuls = count_nul_chunks(data)
    threshold = NUL_CHUNK_THRESHOLD * len(data)
    if data and be_nuls >= threshold:
        candidates.append(UTF16_BE)
    if data and le_nuls >= threshold:
        candidates.append(UTF16_LE)
    candidates.extend(FALLBACK_ORDER)
    return candidates


def bytes_to_json_text(data: bytes) -> str:
    """
    Turn raw result-file bytes into canonical JSON text

    Raises:
        EncodingError: no encoding could decode the bytes
        MalformedJson: the bytes decoded but are not JSON
    """
    for bom, encoding in BOMS:
        if data.startswith(bom):
            try:
                text = data[len(bom):].decode(encoding)
            except UnicodeDecodeError as e:
                raise EncodingError(f"Invalid {encoding} after byte order mark: {e}") from e
            try:
                return dedup_json(text)
            except ValueError as e:
                raise MalformedJson(f"Invalid JSON ({encoding}): {e}") from e

    decoded_any = False
    tried = set()
    for encoding in _candidate_encodings(data):
        if encoding in tried:
            continue
        tried.add(encoding)
        json_text, decoded = _try_conversion(data, encoding)
        if json_text is not None:
            return json_text
        decoded_any = decoded_any or decoded

    if decoded_any:
        raise MalformedJson("Decoded text is not valid JSON in any candidate encoding")
    raise EncodingError("Failed to figure out JSON file encoding")
