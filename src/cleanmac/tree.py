"""Turn scan items into a browsable tree.

Items are grouped by their path below a target into a prefix tree whose
nodes carry the total size of everything under them. The tree is then
flattened into display rows, honouring which folders are expanded.
"""

import posixpath
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Optional

from cleanmac.models import ScanItem, format_size


@dataclass
class TreeNode:
    """A path segment below the base path."""

    name: str
    full_path: str
    depth: int
    size_bytes: int = 0
    items: list[ScanItem] = field(default_factory=list)
    children: dict[str, "TreeNode"] = field(default_factory=dict)
    is_leaf: bool = False
    app_installed: Optional[bool] = None
    matched_app_name: Optional[str] = None
    is_orphaned: bool = False

    def _take_app_status(self, item: ScanItem) -> None:
        self.app_installed = item.app_installed
        self.matched_app_name = item.matched_app_name
        self.is_orphaned = item.app_installed is False


@dataclass(frozen=True)
class FlatTreeNode:
    """One display row of a flattened tree."""

    value: str
    label: str
    size_bytes: int
    depth: int
    is_expanded: bool
    has_children: bool
    is_leaf: bool
    is_orphaned: bool
    app_installed: Optional[bool] = None
    matched_app_name: Optional[str] = None


def build_tree(items: Iterable[ScanItem], base_path: str) -> dict[str, TreeNode]:
    """
    Build a prefix tree of items below ``base_path``.

    Every node's size is the sum of the items under it. A node becomes a
    leaf where an item's path ends. Intermediate nodes take their app
    status from the first item below them that has one.

    Args:
        items: Scan items, all located below base_path
        base_path: Path the tree is relative to

    Returns:
        Top-level nodes keyed by name
    """
    root: dict[str, TreeNode] = {}

    for item in items:
        relative = item.path[len(base_path) + 1:]
        parts = [part for part in relative.split("/") if part]
        if not parts:
            continue

        level = root
        current_path = base_path
        for depth, part in enumerate(parts):
            current_path = posixpath.join(current_path, part)
            node = level.get(part)
            if node is None:
                node = TreeNode(name=part, full_path=current_path, depth=depth)
                level[part] = node

            node.size_bytes += item.size_bytes
            if depth == len(parts) - 1:
                node.items.append(item)
                node.is_leaf = True
                node._take_app_status(item)
            else:
                if node.app_installed is None and item.app_installed is not None:
                    node._take_app_status(item)
                level = node.children

    return root


def _sort_key(node: TreeNode) -> tuple[bool, int]:
    # Orphaned first, then largest first
    return (not node.is_orphaned, -node.size_bytes)


def node_label(node: TreeNode, depth: int, is_expanded: bool) -> str:
    """Display label for a tree node."""
    indent = "  " * depth
    if node.children:
        prefix = "▼ " if is_expanded else "▶ "
    else:
        prefix = "  "
    status = ""
    if node.is_orphaned:
        status = "ORPHANED "
    elif node.app_installed:
        status = f"[INSTALLED: {node.matched_app_name}] " if node.matched_app_name else "[INSTALLED] "
    return f"{indent}{prefix}{status}{node.name} ({format_size(node.size_bytes)})"


def flatten_tree(
    tree: dict[str, TreeNode],
    expanded: set[str],
    base_path: str,
) -> list[FlatTreeNode]:
    """
    Flatten a tree into display rows, depth first.

    Args:
        tree: Top-level nodes from build_tree
        expanded: Paths of the nodes whose children are shown
        base_path: Base path the tree was built with

    Returns:
        One row per visible node
    """
    rows: list[FlatTreeNode] = []

    def visit(nodes: dict[str, TreeNode], current_path: str, depth: int) -> None:
        for name, node in sorted(nodes.items(), key=lambda pair: _sort_key(pair[1])):
            node_path = posixpath.join(current_path, name)
            is_expanded = node_path in expanded
            rows.append(
                FlatTreeNode(
                    value=node_path,
                    label=node_label(node, depth, is_expanded),
                    size_bytes=node.size_bytes,
                    depth=depth,
                    is_expanded=is_expanded,
                    has_children=bool(node.children),
                    is_leaf=node.is_leaf,
                    is_orphaned=node.is_orphaned,
                    app_installed=node.app_installed,
                    matched_app_name=node.matched_app_name,
                )
            )
            if is_expanded and node.children:
                visit(node.children, node_path, depth + 1)

    visit(tree, base_path, 0)
    return rows


def toggle_expanded(expanded: set[str], path: str) -> None:
    """Expand a collapsed node or collapse an expanded one."""
    if path in expanded:
        expanded.discard(path)
    else:
        expanded.add(path)


def collect_selected_items(items: Iterable[ScanItem], selected_paths: Iterable[str]) -> list[ScanItem]:
    """Items at or below any selected path, without duplicates."""
    selected = list(selected_paths)
    found: dict[str, ScanItem] = {}
    for item in items:
        for path in selected:
            if item.path == path or item.path.startswith(path + "/"):
                found.setdefault(item.path, item)
                break
    return list(found.values())
