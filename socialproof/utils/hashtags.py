import re
from typing import Dict, Iterable, List

# \w is unicode-aware, so non-latin tags (#東京, #שלום) are kept
HASHTAG_PATTERN = re.compile(r"#(\w+)")


def find_hashtags(text: str) -> List[str]:
    if not text:
        return []
    return [tag.lower() for tag in HASHTAG_PATTERN.findall(text)]


def extract_top_hashtags(texts: Iterable[str], limit: int = 10) -> List[str]:
    """
    Most frequent hashtags across ``texts``, without the leading ``#``.

    Ordered by frequency descending; ties keep the order in which each tag
    was first seen. Returns at most ``limit`` tags.
    """
    if limit <= 0:
        return []

    counts: Dict[str, int] = {}
    first_seen: Dict[str, int] = {}
    for text in texts:
        for tag in find_hashtags(text):
            if tag not in counts:
                counts[tag] = 0
                first_seen[tag] = len(first_seen)
            counts[tag] += 1

    ranked = sorted(counts, key=lambda tag: (-counts[tag], first_seen[tag]))
    return ranked[:limit]
