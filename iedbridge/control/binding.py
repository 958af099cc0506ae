# iedbridge/control/binding.py
"""Control binding record."""

from dataclasses import dataclass

from iedbridge.model.nodes import ModelNode

# Longest reference kept when the server cannot produce one
MAX_REFERENCE_LENGTH = 255


@dataclass(frozen=True)
class ControlBinding:
    """
    One controllable data object and the attributes an operate updates.

    The nodes are borrowed from the model tree. path is computed once at
    registration and stays fixed for the binding's lifetime.
    """

    control_point: ModelNode
    status_attribute: ModelNode | None
    timestamp_attribute: ModelNode | None
    path: str
