"""
Augmented interval tree used by the Event Store for conflict lookups.

The tree is built in one pass from a batch of intervals and is read-only
afterwards; the store throws it away and rebuilds it after any mutation.
Every node keeps the largest end in its subtree, which lets a query skip
whole subtrees that end before the query window starts.
"""

from typing import Any, Callable, Generic, Iterable, Optional, TypeVar

# T represents the Totally Ordered type used for coordinates (Time)
T = TypeVar('T')


class IntervalHandle(Generic[T]):
    """Node with public accessors for start, end, and data."""
    __slots__ = ['start', 'end', 'data', 'left', 'right', 'max_end']

    def __init__(self, start: T, end: T, data: Any):
        self.start: T = start
        self.end: T = end
        self.data: Any = data
        self.left: Optional['IntervalHandle[T]'] = None
        self.right: Optional['IntervalHandle[T]'] = None
        self.max_end: T = end


class IntervalTree(Generic[T]):
    def __init__(self, intervals: Iterable[tuple[T, T, Any]] = ()):
        nodes = [IntervalHandle(start, end, data) for start, end, data in intervals]
        # Stable sort keeps insertion order among equal starts
        nodes.sort(key=lambda n: n.start)
        self._size = len(nodes)
        self.root: Optional[IntervalHandle[T]] = self._build(nodes, 0, len(nodes))

    def __len__(self) -> int:
        return self._size

    # --- Internal Utilities ---

    def _build(self, nodes: list, lo: int, hi: int) -> Optional[IntervalHandle[T]]:
        if lo >= hi:
            return None
        mid = (lo + hi) // 2
        node = nodes[mid]
        node.left = self._build(nodes, lo, mid)
        node.right = self._build(nodes, mid + 1, hi)
        m = node.end
        if node.left and node.left.max_end > m: m = node.left.max_end
        if node.right and node.right.max_end > m: m = node.right.max_end
        node.max_end = m
        return node

    # --- Search Methods ---

    def find_overlapping(self, start: T, end: T, callback: Callable[[IntervalHandle[T]], None]):
        """
        Finds intervals whose half-open span [node.start, node.end) overlaps
        the half-open window [start, end), i.e. node.start < end and node.end > start.
        """
        def _search(node):
            if not node or node.max_end <= start: return
            _search(node.left)
            if node.start < end and node.end > start: callback(node)
            if node.start < end: _search(node.right)
        _search(self.root)

    def overlapping(self, start: T, end: T) -> list[Any]:
        """Data of every interval overlapping [start, end), in start order."""
        hits = []
        self.find_overlapping(start, end, lambda node: hits.append(node.data))
        return hits

    def find_containing(self, time: T, callback: Callable[[IntervalHandle[T]], None]):
        """Finds intervals that cover a specific point in time (start inclusive, end exclusive)."""
        def _search(node):
            if not node or node.max_end <= time: return
            _search(node.left)
            if node.start <= time < node.end: callback(node)
            if node.start <= time: _search(node.right)
        _search(self.root)

    # --- Debug Tool ---

    def verify_integrity(self):
        """Raises if ordering or max_end augmentation is violated."""
        def _walk(node, low, high):
            if not node: return None
            if (low is not None and node.start < low) or (high is not None and node.start > high):
                raise RuntimeError(f"Ordering Violation at {node.start}")
            expected_max = node.end
            for child_max in (_walk(node.left, low, node.start), _walk(node.right, node.start, high)):
                if child_max is not None and child_max > expected_max:
                    expected_max = child_max
            if node.max_end != expected_max:
                raise RuntimeError(f"MaxEnd Violation at {node.start}")
            return expected_max

        _walk(self.root, None, None)
