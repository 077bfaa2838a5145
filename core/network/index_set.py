"""
Flatten nested lists and rebuild them from offset ranges
"""
from typing import TypeVar

T = TypeVar("T")

# Half open [start, end) range into a flat list
IndexSet = tuple[int, int]


def build_index_set(groups: list[list[T]]) -> list[IndexSet]:
    """Running-total offsets of each group, e.g. [[1, 2, 3], [1, 2, 3, 4]] -> [(0, 3), (3, 7)]"""
    indexes: list[IndexSet] = []
    last_index = 0
    for group in groups:
        indexes.append((last_index, last_index + len(group)))
        last_index += len(group)
    return indexes


def flatten(groups: list[list[T]]) -> list[T]:
    return [item for group in groups for item in group]


def rebuild_from_index_set(flat: list[T], indexes: list[IndexSet]) -> list[list[T]]:
    """Inverse of flatten for the index set built from the same groups"""
    return [flat[start:end] for start, end in indexes]
