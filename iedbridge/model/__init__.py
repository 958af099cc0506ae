# iedbridge/model/__init__.py
"""
IEC 61850 device model.

Modules:
- nodes: node kinds, functional constraints, typed values, the model tree
- walker: depth-first traversal
- loader: YAML model documents
"""

from iedbridge.model.loader import build_model, default_model_document, load_model
from iedbridge.model.nodes import (
    AttributeType,
    FunctionalConstraint,
    IedModel,
    ModelNode,
    NodeKind,
    TypedValue,
    ValueType,
)
from iedbridge.model.walker import iter_preorder, traverse, traverse_model

__all__ = [
    "AttributeType",
    "FunctionalConstraint",
    "IedModel",
    "ModelNode",
    "NodeKind",
    "TypedValue",
    "ValueType",
    "build_model",
    "default_model_document",
    "load_model",
    "iter_preorder",
    "traverse",
    "traverse_model",
]
