"""Line-oriented manifests: one file path or shell command per line."""

from dataclasses import dataclass
from typing import List

from .errors import ManifestReadError

SKIP_PREFIX = '//'


@dataclass(frozen=True)
class ManifestEntry:
    line_number: int
    text: str


def parse_manifest(text: str) -> List[ManifestEntry]:
    """
    Split manifest text into entries.

    Lines whose first two characters are the // skip prefix and blank lines
    are dropped. Surrounding whitespace (including a trailing \\r) is stripped
    from the rest, after the prefix check.
    """
    entries: List[ManifestEntry] = []
    for number, line in enumerate(text.splitlines(), start=1):
        if line.startswith(SKIP_PREFIX):
            continue
        line = line.strip()
        if not line:
            continue
        entries.append(ManifestEntry(number, line))
    return entries


def read_manifest(path: str) -> List[ManifestEntry]:
    """
    Read and parse a manifest file.

    Raises:
        ManifestReadError: the file cannot be opened or is not valid UTF-8
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            text = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestReadError(path, cause=e)
    return parse_manifest(text)
