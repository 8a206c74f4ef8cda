from typing import Any, Dict, Iterable, List, Optional, Tuple


def _coerce_int(val: Any) -> Optional[int]:
    if isinstance(val, bool):
        return None
    if isinstance(val, int):
        return val
    if val is None:
        return None
    try:
        return int(str(val).strip())
    except ValueError:
        return None


def validate_sequential_page_numbers(
    rows: Iterable[Dict[str, Any]],
    *,
    field: str = "page",
    expected_total: Optional[int] = None,
) -> Tuple[bool, List[int], List[int]]:
    """
    Check that page numbers run 1..N in ascending order with no gaps or repeats.
    Returns (ok, missing, unexpected); `unexpected` holds repeats, out-of-order
    and out-of-range numbers. N is `expected_total` when given, else the highest page seen.
    """
    nums: List[int] = []
    unexpected: List[int] = []
    for row in rows:
        n = _coerce_int(row.get(field))
        if n is None or n < 1:
            unexpected.append(n if n is not None else -1)
            continue
        nums.append(n)
    total = expected_total if expected_total is not None else (max(nums) if nums else 0)

    seen = set()
    prev = 0
    for n in nums:
        if n in seen or n <= prev or n > total:
            unexpected.append(n)
            continue
        seen.add(n)
        prev = n
    missing = [n for n in range(1, total + 1) if n not in seen]
    ok = not missing and not unexpected
    return ok, missing, unexpected
