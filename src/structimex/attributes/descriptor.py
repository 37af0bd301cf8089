"""
Attribute descriptor types.

An AttributeDescriptor states everything the schema knows about one
attribute of one question type: its default, the primitive type used for
validation, and the allowed options for single-select values.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class PrimitiveType(Enum):
    """Primitive value kinds used for attribute validation."""

    SWITCH = "switch"
    INTEGER = "integer"
    SINGLESELECT = "singleselect"
    TEXT = "text"
    TEXTAREA = "textarea"
    COLUMNS = "columns"


@dataclass(frozen=True)
class AttributeDescriptor:
    """
    Definition of a single question attribute.

    Properties:
        name: Attribute name as stored (e.g. "hidden")
        default: Default value as a string ("" for no default)
        primitive: Validation kind
        options: Allowed values for SINGLESELECT/SWITCH attributes
        category: Grouping used in the reference sheet
        min_value: Lower bound for INTEGER attributes (inclusive)
        max_value: Upper bound for INTEGER attributes (inclusive)
        label: Short human readable description
    """

    name: str
    default: str = ""
    primitive: PrimitiveType = PrimitiveType.TEXT
    options: Tuple[str, ...] = ()
    category: str = "Other"
    min_value: Optional[int] = None
    max_value: Optional[int] = None
    label: str = ""

    @property
    def description(self) -> str:
        return self.label or self.name.replace("_", " ").capitalize()

    def allowed_values(self) -> str:
        """Describe the accepted values in one line for the reference sheet."""
        if self.primitive is PrimitiveType.SWITCH:
            return "0 or 1"
        if self.primitive is PrimitiveType.SINGLESELECT:
            return ", ".join(repr(o) if o == "" else o for o in self.options)
        if self.primitive is PrimitiveType.INTEGER:
            if self.min_value is not None or self.max_value is not None:
                low = "" if self.min_value is None else self.min_value
                high = "" if self.max_value is None else self.max_value
                return f"integer {low}-{high}"
            return "integer"
        if self.primitive is PrimitiveType.COLUMNS:
            return "number of columns"
        return "free text"


__all__ = ["PrimitiveType", "AttributeDescriptor"]
