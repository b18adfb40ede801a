"""
Count coercion and field-name fallback for unstable scraper schemas.

Each canonical field is resolved from an ordered list of named extractor
functions. The first extractor that finds a value wins, so the fallback order
stays explicit and every extractor can be tested on its own.
"""
import re
from typing import Any, Callable, Iterable, Optional

Extractor = Callable[[dict], Any]

_MAGNITUDES = {"K": 1_000, "M": 1_000_000, "B": 1_000_000_000}
# A suffix letter only counts when it is not the start of a word ("500 MEMBERS")
_LEADING_COUNT = re.compile(r"^([0-9]+(?:\.[0-9]+)?)\s*([KMB])?(?![A-Z])")


def normalize_count(value: Any) -> int:
    """
    Coerce a scraped count into an int.

    ``42 -> 42``, ``"1,234" -> 1234``, ``"12.3K" -> 12300``,
    ``"1.5M" -> 1500000``, ``"2B" -> 2000000000``. Text such as
    ``"1.2M subscribers"`` is reduced to its leading number. Missing or
    unreadable values are 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(round(value))

    text = str(value).strip().upper().replace(",", "")
    if not text:
        return 0

    # Trailing words ("subscribers", "views") are ignored
    match = _LEADING_COUNT.match(text)
    if match is None:
        return 0
    number = float(match.group(1))
    suffix = match.group(2)
    if suffix:
        number *= _MAGNITUDES[suffix]
    return int(round(number))


def field(*path: str) -> Extractor:
    """
    Build a named extractor reading ``item[path[0]][path[1]]...``.

    Returns None when any step is missing, so the next extractor is tried.
    """

    def extract(item: dict) -> Any:
        current: Any = item
        for key in path:
            if not isinstance(current, dict):
                return None
            current = current.get(key)
            if current is None:
                return None
        return current

    extract.__name__ = "field:" + ".".join(path)
    return extract


def first_item(*path: str) -> Extractor:
    """Extractor reading the first element of a list found at ``path``."""
    base = field(*path)

    def extract(item: dict) -> Any:
        value = base(item)
        if isinstance(value, list) and value:
            return value[0]
        return None

    extract.__name__ = "first:" + ".".join(path)
    return extract


def resolve(item: dict, extractors: Iterable[Extractor], default: Any = None) -> Any:
    """Return the first non-empty value produced by ``extractors``."""
    for extractor in extractors:
        value = extractor(item)
        if value is not None and value != "":
            return value
    return default


def resolve_count(item: dict, extractors: Iterable[Extractor]) -> int:
    return normalize_count(resolve(item, extractors, default=0))


def resolve_text(item: dict, extractors: Iterable[Extractor], default: str = "") -> str:
    value = resolve(item, extractors, default=default)
    return str(value) if value is not None else default


def resolve_flag(item: dict, extractors: Iterable[Extractor]) -> bool:
    value = resolve(item, extractors, default=False)
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def optional_count(item: dict, extractors: Iterable[Extractor]) -> Optional[int]:
    """Like ``resolve_count`` but None when no extractor matched."""
    value = resolve(item, extractors)
    if value is None:
        return None
    return normalize_count(value)
