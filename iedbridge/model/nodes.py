# iedbridge/model/nodes.py
"""
IEC 61850 device model tree.

A model is a list of logical devices; each logical device is the root of
a tree of logical nodes, data objects and data attributes. Children keep
their definition order, which is the order every traversal follows.

Object references follow IEC 61850 naming:

    <IEDname><LDinst>/<LNname>.<DOname>[.<DAname>...]

The functional constraint is a qualifier on a node and never part of its
reference, so two children may share a name under one parent as long as
their constraints differ.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator

__all__ = [
    "NodeKind",
    "FunctionalConstraint",
    "AttributeType",
    "ValueType",
    "TypedValue",
    "ModelNode",
    "IedModel",
]


class NodeKind(Enum):
    """Level of a node in the device model."""

    LOGICAL_DEVICE = "LD"
    LOGICAL_NODE = "LN"
    DATA_OBJECT = "DO"
    DATA_ATTRIBUTE = "DA"


class FunctionalConstraint(Enum):
    """IEC 61850-7-2 functional constraints."""

    ST = "ST"  # Status information
    MX = "MX"  # Measurands
    CO = "CO"  # Control
    CF = "CF"  # Configuration
    DC = "DC"  # Description
    SP = "SP"  # Setting
    SV = "SV"  # Substitution
    SG = "SG"  # Setting group
    SE = "SE"  # Setting group editable
    SR = "SR"  # Service response
    OR = "OR"  # Operate received
    BL = "BL"  # Blocking
    EX = "EX"  # Extended definition
    US = "US"  # Unbuffered control block
    MS = "MS"  # Multicast sampled value control block
    RP = "RP"  # Unbuffered report control block
    BR = "BR"  # Buffered report control block
    LG = "LG"  # Log control block
    GO = "GO"  # GOOSE control block


class AttributeType(Enum):
    """Declared basic type of a data attribute."""

    BOOLEAN = "BOOLEAN"
    INT32 = "INT32"
    INT32U = "INT32U"
    FLOAT32 = "FLOAT32"
    FLOAT64 = "FLOAT64"
    ENUMERATED = "Enum"
    VISIBLE_STRING = "VisString255"
    UTC_TIME = "Timestamp"
    QUALITY = "Quality"
    CONSTRUCTED = "Struct"


class ValueType(Enum):
    """Runtime type of a value pushed through the server update API."""

    BOOLEAN = "boolean"
    INT32 = "int32"
    FLOAT = "float"
    UTC_TIME = "utc-time"
    STRING = "string"


@dataclass(frozen=True)
class TypedValue:
    """A value tagged with its runtime type."""

    value_type: ValueType
    value: Any

    @classmethod
    def boolean(cls, value: bool) -> "TypedValue":
        return cls(ValueType.BOOLEAN, bool(value))

    @classmethod
    def int32(cls, value: int) -> "TypedValue":
        return cls(ValueType.INT32, int(value))

    @classmethod
    def floating(cls, value: float) -> "TypedValue":
        return cls(ValueType.FLOAT, float(value))

    @classmethod
    def utc_time(cls, milliseconds: int) -> "TypedValue":
        return cls(ValueType.UTC_TIME, int(milliseconds))

    def __str__(self) -> str:
        if self.value_type is ValueType.BOOLEAN:
            return "true" if self.value else "false"
        return str(self.value)


@dataclass(eq=False)
class ModelNode:
    """
    One node of the device model.

    Nodes compare by identity: two attributes with equal names under
    different parents are different points.
    """

    name: str
    kind: NodeKind
    fc: FunctionalConstraint | None = None
    attribute_type: AttributeType | None = None
    value: TypedValue | None = None
    parent: "ModelNode | None" = field(default=None, repr=False)
    children: list["ModelNode"] = field(default_factory=list, repr=False)

    def add_child(self, child: "ModelNode") -> "ModelNode":
        """Append a child in definition order and return it."""
        child.parent = self
        self.children.append(child)
        return child

    def get_child(self, name: str) -> "ModelNode | None":
        """First child with the given name, whatever its constraint."""
        for child in self.children:
            if child.name == name:
                return child
        return None

    def get_child_with_fc(
        self, name: str, fc: FunctionalConstraint
    ) -> "ModelNode | None":
        """First child with the given name and functional constraint."""
        for child in self.children:
            if child.name == name and child.fc is fc:
                return child
        return None

    @property
    def is_attribute(self) -> bool:
        return self.kind is NodeKind.DATA_ATTRIBUTE

    @property
    def logical_device(self) -> "ModelNode":
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    def object_reference(self, ied_name: str = "") -> str:
        """Build the IEC 61850 object reference of this node."""
        names = []
        node = self
        while node.parent is not None:
            names.append(node.name)
            node = node.parent

        ld_name = f"{ied_name}{node.name}"
        if not names:
            return ld_name
        names.reverse()
        return f"{ld_name}/{'.'.join(names)}"


class IedModel:
    """
    A complete IED model: an IED name and its logical devices.

    Example:
        >>> model = IedModel("IED1")
        >>> ld = model.add_logical_device("LD0")
        >>> lln0 = ld.add_child(ModelNode("LLN0", NodeKind.LOGICAL_NODE))
        >>> model.get_node_by_reference("IED1LD0/LLN0") is lln0
        True
    """

    def __init__(self, name: str = ""):
        self.name = name
        self.logical_devices: list[ModelNode] = []

    def add_logical_device(self, name: str) -> ModelNode:
        if any(ld.name == name for ld in self.logical_devices):
            raise ValueError(f"Duplicate logical device: {name}")
        ld = ModelNode(name, NodeKind.LOGICAL_DEVICE)
        self.logical_devices.append(ld)
        return ld

    def get_logical_device(self, name: str) -> ModelNode | None:
        for ld in self.logical_devices:
            if f"{self.name}{ld.name}" == name:
                return ld
        return None

    def contains(self, node: ModelNode) -> bool:
        """True if the node hangs under one of this model's logical devices."""
        root = node.logical_device
        return any(root is ld for ld in self.logical_devices)

    def object_reference(self, node: ModelNode) -> str:
        return node.object_reference(self.name)

    def get_node_by_reference(self, reference: str) -> ModelNode | None:
        """
        Resolve a full object reference.

        Returns None for anything that does not name an existing node,
        including references without the "/" separator.
        """
        ld_name, sep, rest = reference.partition("/")
        if not sep or not rest:
            return None

        node = self.get_logical_device(ld_name)
        if node is None:
            return None

        for name in rest.split("."):
            node = node.get_child(name)
            if node is None:
                return None
        return node

    def __iter__(self) -> Iterator[ModelNode]:
        return iter(self.logical_devices)
