# iedbridge/model/loader.py
"""
YAML device model loader.

Builds an IedModel from a YAML document of nested logical devices,
logical nodes, data objects and data attributes:

    ied_name: ""
    logical_devices:
      - name: Device
        logical_nodes:
          - name: LLN0
            data_objects:
              - name: Mod
                attributes:
                  - {name: stVal, fc: ST, type: INT32, value: 1}
                  - {name: t, fc: ST, type: Timestamp}
                  - name: Oper
                    fc: CO
                    type: Struct
                    attributes:
                      - {name: ctlVal, type: INT32}

Data objects may nest further data objects under "data_objects";
constructed attributes nest their members under "attributes".
"""

from pathlib import Path
from typing import Any

import yaml

from iedbridge.model.nodes import (
    AttributeType,
    FunctionalConstraint,
    IedModel,
    ModelNode,
    NodeKind,
    TypedValue,
    ValueType,
)

__all__ = ["load_model", "build_model", "default_model_document", "initial_value"]


def load_model(path: Path | str, ied_name: str | None = None) -> IedModel:
    """
    Load a device model from a YAML file.

    Args:
        path: Model file
        ied_name: Overrides the document's ied_name when given

    Raises:
        ValueError: If the document is not a valid model
    """
    with open(path) as f:
        document = yaml.safe_load(f)

    if not isinstance(document, dict):
        raise ValueError(f"Model file {path} does not contain a mapping")

    return build_model(document, ied_name=ied_name)


def build_model(document: dict[str, Any], ied_name: str | None = None) -> IedModel:
    """Build an IedModel from an already parsed document."""
    name = ied_name if ied_name is not None else document.get("ied_name", "")
    model = IedModel(name or "")

    devices = document.get("logical_devices") or []
    if not devices:
        raise ValueError("Model has no logical devices")

    for ld_doc in devices:
        ld = model.add_logical_device(_require_name(ld_doc, "logical device"))
        for ln_doc in ld_doc.get("logical_nodes") or []:
            ln = ld.add_child(
                ModelNode(_require_name(ln_doc, "logical node"), NodeKind.LOGICAL_NODE)
            )
            for do_doc in ln_doc.get("data_objects") or []:
                _add_data_object(ln, do_doc)

    return model


def _require_name(doc: Any, what: str) -> str:
    if not isinstance(doc, dict) or not doc.get("name"):
        raise ValueError(f"Every {what} needs a name: {doc!r}")
    return str(doc["name"])


def _add_data_object(parent: ModelNode, doc: dict[str, Any]) -> None:
    do = parent.add_child(
        ModelNode(_require_name(doc, "data object"), NodeKind.DATA_OBJECT)
    )
    for da_doc in doc.get("attributes") or []:
        _add_data_attribute(do, da_doc, inherited_fc=None)
    for sdo_doc in doc.get("data_objects") or []:
        _add_data_object(do, sdo_doc)


def _add_data_attribute(
    parent: ModelNode,
    doc: dict[str, Any],
    inherited_fc: FunctionalConstraint | None,
) -> None:
    name = _require_name(doc, "data attribute")

    fc = inherited_fc
    if doc.get("fc"):
        try:
            fc = FunctionalConstraint(str(doc["fc"]).upper())
        except ValueError:
            raise ValueError(
                f"Unknown functional constraint {doc['fc']!r} on {name}"
            ) from None

    members = doc.get("attributes") or []
    type_name = doc.get("type", "Struct" if members else "INT32")
    try:
        attribute_type = AttributeType(type_name)
    except ValueError:
        try:
            attribute_type = AttributeType[str(type_name).upper()]
        except KeyError:
            raise ValueError(
                f"Unknown attribute type {type_name!r} on {name}"
            ) from None

    da = parent.add_child(
        ModelNode(
            name,
            NodeKind.DATA_ATTRIBUTE,
            fc=fc,
            attribute_type=attribute_type,
            value=initial_value(attribute_type, doc.get("value")),
        )
    )
    for member_doc in members:
        _add_data_attribute(da, member_doc, inherited_fc=fc)


def initial_value(attribute_type: AttributeType, raw: Any) -> TypedValue | None:
    """Typed start value for an attribute, or None for constructed types."""
    if attribute_type is AttributeType.BOOLEAN:
        return TypedValue.boolean(bool(raw) if raw is not None else False)
    if attribute_type in (
        AttributeType.INT32,
        AttributeType.INT32U,
        AttributeType.ENUMERATED,
    ):
        return TypedValue.int32(int(raw) if raw is not None else 0)
    if attribute_type in (AttributeType.FLOAT32, AttributeType.FLOAT64):
        return TypedValue.floating(float(raw) if raw is not None else 0.0)
    if attribute_type is AttributeType.UTC_TIME:
        return TypedValue.utc_time(int(raw) if raw is not None else 0)
    if attribute_type is AttributeType.VISIBLE_STRING:
        return TypedValue(ValueType.STRING, str(raw or ""))
    return None


# ----------------------------------------------------------------
# Default demo model
# ----------------------------------------------------------------


def _status_attributes(stval_type: str, value: Any) -> list[dict[str, Any]]:
    return [
        {"name": "stVal", "fc": "ST", "type": stval_type, "value": value},
        {"name": "q", "fc": "ST", "type": "Quality"},
        {"name": "t", "fc": "ST", "type": "Timestamp"},
    ]


def _controllable(name: str, stval_type: str, value: Any, ctl_model: int) -> dict:
    return {
        "name": name,
        "attributes": _status_attributes(stval_type, value)
        + [
            {
                "name": "Oper",
                "fc": "CO",
                "type": "Struct",
                "attributes": [
                    {"name": "ctlVal", "type": stval_type},
                    {"name": "ctlNum", "type": "INT32U"},
                    {"name": "T", "type": "Timestamp"},
                    {"name": "Test", "type": "BOOLEAN"},
                    {"name": "Check", "type": "INT32U"},
                ],
            },
            {"name": "ctlModel", "fc": "CF", "type": "Enum", "value": ctl_model},
        ],
    }


def _status_only(name: str, stval_type: str, value: Any) -> dict:
    return {"name": name, "attributes": _status_attributes(stval_type, value)}


def default_model_document() -> dict[str, Any]:
    """
    Demo model with one logical device.

    Controllable points: LLN0.Mod, XCBR1.Pos, XCBR1.BlkOpn, XCBR1.BlkCls
    and CSWI1.Pos. Beh, Health and the MMXU measurements are status only.
    """
    common = [
        _controllable("Mod", "Enum", 1, 1),
        _status_only("Beh", "Enum", 1),
        _status_only("Health", "Enum", 1),
    ]
    return {
        "ied_name": "",
        "logical_devices": [
            {
                "name": "Device",
                "logical_nodes": [
                    {"name": "LLN0", "data_objects": common},
                    {
                        "name": "XCBR1",
                        "data_objects": [
                            _status_only("Beh", "Enum", 1),
                            _controllable("Pos", "INT32", 1, 4),
                            _controllable("BlkOpn", "BOOLEAN", False, 1),
                            _controllable("BlkCls", "BOOLEAN", False, 1),
                        ],
                    },
                    {
                        "name": "CSWI1",
                        "data_objects": [
                            _status_only("Beh", "Enum", 1),
                            _controllable("Pos", "INT32", 1, 2),
                        ],
                    },
                    {
                        "name": "MMXU1",
                        "data_objects": [
                            _status_only("Beh", "Enum", 1),
                            {
                                "name": "TotW",
                                "attributes": [
                                    {"name": "mag", "fc": "MX", "type": "FLOAT32"},
                                    {"name": "q", "fc": "MX", "type": "Quality"},
                                    {"name": "t", "fc": "MX", "type": "Timestamp"},
                                ],
                            },
                            {
                                "name": "Hz",
                                "attributes": [
                                    {
                                        "name": "mag",
                                        "fc": "MX",
                                        "type": "FLOAT32",
                                        "value": 50.0,
                                    },
                                    {"name": "t", "fc": "MX", "type": "Timestamp"},
                                ],
                            },
                        ],
                    },
                ],
            }
        ],
    }
