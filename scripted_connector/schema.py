"""Schema model populated by the SCHEMA script.

The SCHEMA script receives a ``SchemaBuilder`` as its ``builder`` argument
and declares each object class it supports.  Object class and attribute
definitions use the same dictionary shape as RFC 7643 schema resources::

    builder.define_object_class("__ACCOUNT__", [
        builder.attribute("__NAME__", required=True),
        builder.attribute("mail", multi_valued=True),
        builder.attribute("__PASSWORD__", type="guardedString",
                          mutability="writeOnly", returned="never"),
    ], description="User Account")

``SchemaBuilder.build()`` returns an immutable ``Schema``.
"""

import copy
from typing import Any, Dict, List, Optional

# Attribute types a script may declare
ATTRIBUTE_TYPES = (
    "string", "boolean", "integer", "decimal", "dateTime", "binary",
    "reference", "complex", "guardedString",
)

MUTABILITIES = ("readOnly", "readWrite", "immutable", "writeOnly")
RETURNED = ("always", "never", "default", "request")


class SchemaBuilder:
    """Collects object class definitions declared by a SCHEMA script.

    Args:
        connector_name: Name recorded on the built schema (usually the connector class name).
    """

    def __init__(self, connector_name: str = ""):
        self.connector_name = connector_name
        self._object_classes: Dict[str, Dict[str, Any]] = {}

    @staticmethod
    def attribute(
        name: str,
        type: str = "string",
        required: bool = False,
        multi_valued: bool = False,
        mutability: str = "readWrite",
        returned: str = "default",
        sub_attributes: Optional[List[Dict[str, Any]]] = None,
        **extra: Any,
    ) -> Dict[str, Any]:
        """Return one attribute definition dict, validating its enumerated fields."""
        if type not in ATTRIBUTE_TYPES:
            raise ValueError(f"Unknown attribute type '{type}' for '{name}'")
        if mutability not in MUTABILITIES:
            raise ValueError(f"Unknown mutability '{mutability}' for '{name}'")
        if returned not in RETURNED:
            raise ValueError(f"Unknown returned value '{returned}' for '{name}'")
        attr_def: Dict[str, Any] = {
            "name": name,
            "type": type,
            "required": required,
            "multiValued": multi_valued,
            "mutability": mutability,
            "returned": returned,
        }
        if sub_attributes:
            attr_def["subAttributes"] = list(sub_attributes)
        attr_def.update(extra)
        return attr_def

    def define_object_class(
        self,
        name: str,
        attributes: List[Dict[str, Any]],
        description: str = "",
        container: bool = False,
    ) -> "SchemaBuilder":
        """Declare an object class; redefining a name replaces the earlier definition."""
        seen = set()
        for attr_def in attributes:
            attr_name = attr_def.get("name")
            if not attr_name:
                raise ValueError(f"Object class '{name}' has an attribute without a name")
            if attr_name in seen:
                raise ValueError(f"Object class '{name}' declares '{attr_name}' twice")
            seen.add(attr_name)
        self._object_classes[name] = {
            "name": name,
            "description": description,
            "container": container,
            "attributes": [dict(a) for a in attributes],
        }
        return self

    def build(self) -> "Schema":
        """Return an immutable snapshot of the declared object classes."""
        return Schema(self.connector_name, copy.deepcopy(self._object_classes))


class Schema:
    """Object classes and attribute definitions supported by the connector."""

    def __init__(self, connector_name: str, object_classes: Dict[str, Dict[str, Any]]):
        self.connector_name = connector_name
        self._object_classes = object_classes

    @property
    def object_class_names(self) -> List[str]:
        return list(self._object_classes)

    def get_object_class(self, name: str) -> Optional[Dict[str, Any]]:
        """Get an object class definition by name (a copy)."""
        found = self._object_classes.get(name)
        return copy.deepcopy(found) if found else None

    def get_attribute_def(self, object_class: str, attr_path: str) -> Optional[Dict[str, Any]]:
        """Get an attribute definition by object class and dot-separated path."""
        oc = self._object_classes.get(object_class)
        if not oc:
            return None

        found = None
        attrs = oc["attributes"]
        for part in attr_path.split("."):
            found = None
            for attr in attrs:
                if attr["name"] == part:
                    found = attr
                    break
            if not found:
                return None
            attrs = found.get("subAttributes", [])

        return copy.deepcopy(found)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "connector": self.connector_name,
            "objectClasses": [copy.deepcopy(oc) for oc in self._object_classes.values()],
        }
