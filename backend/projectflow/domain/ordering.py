"""Dense order-index maintenance for sibling groups.

Pure functions with no external dependencies. Items are any pydantic models
exposing ``id``, ``order`` and ``created_at``; the group an item belongs to is
the value of ``group_key`` (e.g. ``"stage_id"`` for subtasks) or a single
implicit group when ``group_key`` is None (stages of one project).

Every function returns a new list; input items are never mutated.
"""

from collections import defaultdict
from collections.abc import Sequence
from typing import Any, TypeVar

from projectflow.core.exceptions import OrderingInvariantError

T = TypeVar("T", bound=Any)


def _group_value(item: Any, group_key: str | None) -> Any:
    return getattr(item, group_key) if group_key else None


def sort_key(item: Any) -> tuple:
    """Order first, creation time as the tie-break (oldest first)."""
    return (item.order, item.created_at)


def sort_group(items: Sequence[T]) -> list[T]:
    return sorted(items, key=sort_key)


def group_members(items: Sequence[T], group_key: str | None, value: Any) -> list[T]:
    return [item for item in items if _group_value(item, group_key) == value]


def next_order(group: Sequence[Any]) -> int:
    """Order value for an item appended to ``group``."""
    return len(group)


def clamp_order(target_order: int, group_size: int) -> int:
    """Clamp a requested position into ``[0, group_size]``."""
    return max(0, min(target_order, group_size))


def remove_and_compact(items: Sequence[T], removed_id: str, group_key: str | None = None) -> list[T]:
    """Remove one item and close the gap it leaves in its own group.

    Siblings in other groups are returned untouched. Unknown ids return a
    shallow copy of ``items``.
    """
    removed = next((item for item in items if item.id == removed_id), None)
    if removed is None:
        return list(items)

    removed_group = _group_value(removed, group_key)
    result = []
    for item in items:
        if item.id == removed_id:
            continue
        if _group_value(item, group_key) == removed_group and item.order > removed.order:
            item = item.model_copy(update={"order": item.order - 1})
        result.append(item)
    return result


def insert_at_order(items: Sequence[T], new_item: T, group_key: str | None, target_order: int) -> list[T]:
    """Insert ``new_item`` at ``target_order`` within its group.

    Siblings at or after the target shift up by one. The target is clamped
    to the group's bounds. ``new_item`` is appended to the end of the
    returned sequence with its order set.
    """
    group = _group_value(new_item, group_key)
    size = len(group_members(items, group_key, group))
    target = clamp_order(target_order, size)

    result = []
    for item in items:
        if _group_value(item, group_key) == group and item.order >= target:
            item = item.model_copy(update={"order": item.order + 1})
        result.append(item)
    result.append(new_item.model_copy(update={"order": target}))
    return result


def reindex(items: Sequence[T], group_key: str | None = None) -> list[T]:
    """Renumber every group densely from 0 in current sort order.

    Repairs gaps and duplicate orders. Items keep their position in the
    returned sequence.
    """
    groups: dict[Any, list[T]] = defaultdict(list)
    for item in items:
        groups[_group_value(item, group_key)].append(item)

    new_orders: dict[str, int] = {}
    for members in groups.values():
        for index, item in enumerate(sort_group(members)):
            new_orders[item.id] = index

    return [
        item if item.order == new_orders[item.id] else item.model_copy(update={"order": new_orders[item.id]})
        for item in items
    ]


def orders_by_group(items: Sequence[Any], group_key: str | None = None) -> dict[Any, list[int]]:
    groups: dict[Any, list[int]] = defaultdict(list)
    for item in items:
        groups[_group_value(item, group_key)].append(item.order)
    return {group: sorted(orders) for group, orders in groups.items()}


def is_dense(items: Sequence[Any], group_key: str | None = None) -> bool:
    """True when every group's orders are exactly ``0..n-1``."""
    return all(
        orders == list(range(len(orders)))
        for orders in orders_by_group(items, group_key).values()
    )


def assert_dense(items: Sequence[Any], group_key: str | None = None) -> None:
    """Raise OrderingInvariantError naming the first non-dense group."""
    for group, orders in orders_by_group(items, group_key).items():
        if orders != list(range(len(orders))):
            raise OrderingInvariantError(str(group) if group is not None else "<root>", orders)
