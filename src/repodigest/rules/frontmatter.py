"""
Leading `---` key/value block parsing for issue and PR bodies.
"""
import re
from typing import Dict

FRONTMATTER_PATTERN = re.compile(r'^---[ \t]*\r?\n(.*?)\r?\n---', re.DOTALL)


def parse_frontmatter(body: str) -> Dict[str, str]:
    """
    Parse a leading frontmatter block into a dict.

    Keys are lowercased; lines without a colon, or with an empty key or value,
    are ignored. Returns {} when the body does not start with `---`.
    """
    if not body:
        return {}

    match = FRONTMATTER_PATTERN.match(body)
    if not match:
        return {}

    values: Dict[str, str] = {}
    for line in match.group(1).splitlines():
        line = line.strip()
        sep = line.find(":")
        if sep <= 0:
            continue
        key = line[:sep].strip().lower()
        value = line[sep + 1:].strip()
        if key and value:
            values[key] = value
    return values
