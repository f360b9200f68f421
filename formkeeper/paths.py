"""Path addressing for nested form data.

Paths use dot segments for mapping keys and either ``[n]`` or ``.n`` for
list indices: ``"user.profile.name"``, ``"items[0].name"`` and
``"items.0.name"`` are all valid. Every component canonicalizes paths to the
dot form with normalize_path() so the same field is always named the same.

Two kinds of tree are addressed here:
- The value tree: arbitrary user data made of dicts, lists and scalars,
  accessed with deep_get() and deep_set().
- Shadow trees (errors, touched, dirty): PathTree instances built from the
  Leaf/Node tagged union, whose path operations are implemented once below.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union
import re

_BRACKET_INDEX = re.compile(r"\[(\d+)\]")


def parse_path(path: str) -> List[str]:
    """Split a path string into its segments.

    Examples:
        >>> parse_path("items[0].name")
        ['items', '0', 'name']
        >>> parse_path("")
        []
    """
    if not path:
        return []
    normalized = _BRACKET_INDEX.sub(r".\1", path)
    return [segment for segment in normalized.split(".") if segment]


def normalize_path(path: str) -> str:
    """Return the canonical dot form of a path.

    Examples:
        >>> normalize_path("items[2].name")
        'items.2.name'
    """
    return ".".join(parse_path(path))


def is_index(segment: str) -> bool:
    """Whether a segment addresses a list position."""
    return segment.isdigit()


def _child(container: Any, key: str) -> Any:
    if isinstance(container, dict):
        return container.get(key)
    if isinstance(container, (list, tuple)):
        if is_index(key) and int(key) < len(container):
            return container[int(key)]
        return None
    return None


def deep_get(obj: Any, path: str) -> Any:
    """Read the value at a path, or None when any segment is missing.

    An empty path returns the object itself.
    """
    if not path:
        return obj
    current = obj
    for key in parse_path(path):
        if current is None:
            return None
        current = _child(current, key)
    return current


def _assign(container: Union[Dict[str, Any], List[Any]], key: str, value: Any) -> None:
    if isinstance(container, list):
        if not is_index(key):
            raise TypeError(f"Cannot address list with non-index segment '{key}'")
        index = int(key)
        if index >= len(container):
            container.extend([None] * (index + 1 - len(container)))
        container[index] = value
    else:
        container[key] = value


def deep_set(obj: Any, path: str, value: Any) -> None:
    """Write a value at a path, creating intermediate containers as needed.

    A missing (or scalar) intermediate becomes a list when the following
    segment is a non-negative integer, and a dict otherwise. Lists are padded
    with None when written past their end.

    Examples:
        >>> data = {}
        >>> deep_set(data, "items.1.name", "B")
        >>> data
        {'items': [None, {'name': 'B'}]}
    """
    keys = parse_path(path)
    if not keys or obj is None:
        return

    current = obj
    for key, next_key in zip(keys, keys[1:]):
        child = _child(current, key)
        if not isinstance(child, (dict, list)):
            child = [] if is_index(next_key) else {}
            _assign(current, key, child)
        current = child

    _assign(current, keys[-1], value)


# ============================================================================
# SHADOW TREES
# ============================================================================


@dataclass
class Leaf:
    """Terminal entry of a shadow tree."""
    value: Any


@dataclass
class Node:
    """Internal entry of a shadow tree mapping segments to subtrees."""
    children: Dict[str, "Tree"] = field(default_factory=dict)


Tree = Union[Leaf, Node]


class PathTree:
    """A path-addressed tree of Leaf values under Node mappings.

    Used for the error, touched and dirty trees. Missing intermediates are
    created on write and never cause reads or deletes to raise. Writing
    below an existing leaf replaces that leaf with a node.

    Examples:
        >>> errors = PathTree()
        >>> errors.set("user.email", "Invalid email")
        >>> errors.to_dict()
        {'user': {'email': 'Invalid email'}}
        >>> errors.delete("user.email")
        >>> errors.is_empty()
        True
    """

    def __init__(self, root: Optional[Node] = None):
        self._root = root if root is not None else Node()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PathTree":
        """Build a tree from nested dicts; every non-dict value is a leaf."""
        return cls(_node_from_dict(data))

    def get(self, path: str) -> Optional[Tree]:
        """Return the subtree at a path, or None."""
        current: Tree = self._root
        for key in parse_path(path):
            if not isinstance(current, Node):
                return None
            child = current.children.get(key)
            if child is None:
                return None
            current = child
        return current

    def get_leaf(self, path: str, default: Any = None) -> Any:
        """Return the leaf value at a path, or default when absent or internal."""
        tree = self.get(path)
        if isinstance(tree, Leaf):
            return tree.value
        return default

    def set(self, path: str, value: Any) -> None:
        """Store a leaf value at a path."""
        keys = parse_path(path)
        if not keys:
            return
        current = self._root
        for key in keys[:-1]:
            child = current.children.get(key)
            if not isinstance(child, Node):
                child = Node()
                current.children[key] = child
            current = child
        current.children[keys[-1]] = Leaf(value)

    def delete(self, path: str) -> None:
        """Remove the entry at a path and prune internal nodes left empty."""
        self._remove(path, leaf_only=False)

    def delete_leaf(self, path: str) -> None:
        """Remove the entry at a path only if it is a leaf, then prune.

        A subtree under the path is left untouched, so clearing a parent's
        own error keeps the errors recorded for its children.
        """
        self._remove(path, leaf_only=True)

    def _remove(self, path: str, leaf_only: bool) -> None:
        keys = parse_path(path)
        if not keys:
            return
        trail: List[Tuple[Node, str]] = []
        current = self._root
        for key in keys[:-1]:
            child = current.children.get(key)
            if not isinstance(child, Node):
                return
            trail.append((current, key))
            current = child
        if leaf_only and not isinstance(current.children.get(keys[-1]), Leaf):
            return
        current.children.pop(keys[-1], None)

        for parent, key in reversed(trail):
            node = parent.children[key]
            if isinstance(node, Node) and not node.children:
                del parent.children[key]
            else:
                break

    def clear(self) -> None:
        self._root = Node()

    def is_empty(self) -> bool:
        return not self._root.children

    def keys(self) -> List[str]:
        """Top-level segments, in insertion order."""
        return list(self._root.children)

    def iter_leaves(self, prefix: str = "") -> Iterator[Tuple[str, Any]]:
        """Yield ``(path, value)`` depth-first in insertion order."""
        yield from _iter_leaves(self._root, prefix)

    def any_leaf(self, predicate=bool) -> bool:
        """Whether any leaf value satisfies predicate."""
        return any(predicate(value) for _, value in self.iter_leaves())

    def to_dict(self) -> Dict[str, Any]:
        """Plain nested-dict rendering of the tree."""
        return _node_to_dict(self._root)


def _iter_leaves(node: Node, prefix: str) -> Iterator[Tuple[str, Any]]:
    for key, child in node.children.items():
        path = f"{prefix}.{key}" if prefix else key
        if isinstance(child, Leaf):
            yield path, child.value
        else:
            yield from _iter_leaves(child, path)


def _node_to_dict(node: Node) -> Dict[str, Any]:
    return {
        key: child.value if isinstance(child, Leaf) else _node_to_dict(child)
        for key, child in node.children.items()
    }


def _node_from_dict(data: Dict[str, Any]) -> Node:
    return Node({
        str(key): _node_from_dict(value) if isinstance(value, dict) else Leaf(value)
        for key, value in data.items()
    })


__all__ = [
    "parse_path",
    "normalize_path",
    "is_index",
    "deep_get",
    "deep_set",
    "Leaf",
    "Node",
    "Tree",
    "PathTree",
]
