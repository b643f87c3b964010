"""
Project-tree renderer.

Builds a nested name structure from relative paths and prints it with
``├──``, ``└──`` and ``│   `` connectors, in the manner of the Unix ``tree``
utility. Rendering works purely from the path list, never from the
filesystem, so the same set of paths always gives the same text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence

BRANCH = "├── "
LAST_BRANCH = "└── "
PIPE = "│   "
SPACE = "    "


@dataclass
class TreeNode:
    children: Dict[str, "TreeNode"] = field(default_factory=dict)

    def child(self, name: str) -> "TreeNode":
        return self.children.setdefault(name, TreeNode())


def build_tree(paths: Iterable[Sequence[str]]) -> TreeNode:
    """Fold component sequences such as ``("src", "main.py")`` into a tree."""
    root = TreeNode()
    for parts in paths:
        node = root
        for part in parts:
            node = node.child(part)
    return root


def render_node(node: TreeNode, prefix: str, lines: List[str]) -> None:
    names = sorted(node.children)
    for idx, name in enumerate(names):
        last = idx == len(names) - 1
        lines.append(f"{prefix}{LAST_BRANCH if last else BRANCH}{name}")
        child = node.children[name]
        if child.children:
            render_node(child, prefix + (SPACE if last else PIPE), lines)


def render_tree(root_name: str, paths: Iterable[Sequence[str]]) -> str:
    """
    Return the tree listing for *paths* under a ``root_name/`` heading.

    • Children are sorted lexically at every level.
    • The output ends with a newline.
    """
    lines: List[str] = [f"{LAST_BRANCH}{root_name}/"]
    render_node(build_tree(paths), SPACE, lines)
    return "\n".join(lines) + "\n"
