from typing import Callable, Optional


def block_for_ts(w3, ts: int, get_timestamp: Optional[Callable[[int], int]] = None) -> int:
    """
    First block whose timestamp is >= ts (binary search over block numbers).

    Returns the latest block when ts is past the chain head.
    get_timestamp lets callers plug in a memoized block-timestamp lookup.
    """
    if get_timestamp is None:
        def get_timestamp(n):
            return w3.eth.get_block(n)["timestamp"]

    lo, hi = 1, w3.eth.block_number
    ans = hi
    while lo <= hi:
        mid = (lo + hi) // 2
        t = get_timestamp(mid)
        if t >= ts:
            ans = mid
            hi = mid - 1
        else:
            lo = mid + 1
    return ans
