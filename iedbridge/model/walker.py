# iedbridge/model/walker.py
"""Depth-first traversal of the device model."""

from typing import Callable

from iedbridge.model.nodes import IedModel, ModelNode, NodeKind

Visitor = Callable[[ModelNode], None]


def iter_preorder(root: ModelNode):
    """
    Yield root and every descendant exactly once, pre-order.

    Children are visited in stored order. Uses an explicit stack so long
    single-child chains do not run into the recursion limit. The tree must
    be acyclic; no cycle detection is done here.
    """
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def traverse(root: ModelNode | None, visit: Visitor) -> None:
    """Invoke visit for every data object at or below root."""
    if root is None:
        return

    for node in iter_preorder(root):
        if node.kind is NodeKind.DATA_OBJECT:
            visit(node)


def traverse_model(model: IedModel, visit: Visitor) -> None:
    """Walk every logical device of the model in definition order."""
    for ld in model.logical_devices:
        traverse(ld, visit)
