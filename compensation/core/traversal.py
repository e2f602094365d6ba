"""
Bounded graph walks over the sponsor chain and the binary downline.

Both walks are iterative with an explicit depth counter and a visited set,
so a cyclic or corrupted graph can never recurse or loop.
"""

from collections.abc import Iterator, Mapping, Sequence


def walk_upline(
    start_id: int,
    parents: Mapping[int, int | None],
    max_depth: int,
) -> Iterator[tuple[int, int]]:
    """
    Walk parent links upward from ``start_id``.

    Stops at a missing parent (no link, or a parent that is not a known
    node), after ``max_depth`` hops, or when a node repeats.

    Args:
        start_id: Node to start from (not yielded)
        parents: Known nodes mapped to their parent id
        max_depth: Maximum number of hops

    Yields:
        (hop, node_id) pairs, hop starting at 1
    """
    visited = {start_id}
    current = parents.get(start_id)
    hop = 0

    while current is not None and hop < max_depth:
        if current not in parents or current in visited:
            break
        hop += 1
        visited.add(current)
        yield hop, current
        current = parents[current]


def walk_downline(
    start_id: int,
    children: Mapping[int, Sequence[int]],
    max_depth: int,
) -> dict[int, list[int]]:
    """
    Collect downline nodes level by level (breadth first).

    Args:
        start_id: Root of the walk (not included)
        children: Node id mapped to its direct children
        max_depth: Deepest level to collect

    Returns:
        Level number (1..max_depth) mapped to node ids at that level;
        levels with no nodes are omitted
    """
    visited = {start_id}
    levels: dict[int, list[int]] = {}
    frontier = [start_id]

    for level in range(1, max_depth + 1):
        next_frontier = []
        for node_id in frontier:
            for child_id in children.get(node_id, ()):
                if child_id in visited:
                    continue
                visited.add(child_id)
                next_frontier.append(child_id)
        if not next_frontier:
            break
        levels[level] = next_frontier
        frontier = next_frontier

    return levels
