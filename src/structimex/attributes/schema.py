"""
Attribute schema: which attributes a question type accepts, their
defaults, and how their values are validated.

ARCHITECTURAL RULE:
    The schema is an immutable object built once and handed to the
    engines that need it. Nothing in this package reads a module-level
    cache of definitions; tests can build a schema from their own tables.
"""

import math
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from ..question_types import QuestionType
from .descriptor import AttributeDescriptor, PrimitiveType

TypeKey = Union[QuestionType, str]

_EMPTY: Mapping[str, AttributeDescriptor] = MappingProxyType({})


def normalize_value(value: Any) -> Any:
    """
    Convert a decoded JSON scalar to the string form attributes are stored in.

    Booleans become "1"/"0", integral floats lose their fraction, None is
    kept as None. Lists and dicts are returned unchanged so validation can
    reject them.
    """
    if value is None or isinstance(value, (list, dict)):
        return value
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class AttributeSchema:
    """
    Registry of attribute descriptors per question type.

    Args:
        universal: Descriptors merged into every question type
        per_type: Type-specific descriptors, which win over universal ones

    Example:
        >>> schema = AttributeSchema.default()
        >>> schema.is_valid("L", "answer_order")
        True
        >>> schema.is_non_default("L", "hidden", "0")
        False
    """

    def __init__(
        self,
        universal: Iterable[AttributeDescriptor],
        per_type: Mapping[QuestionType, Iterable[AttributeDescriptor]],
    ):
        universal = list(universal)
        table: Dict[QuestionType, Mapping[str, AttributeDescriptor]] = {}
        for question_type in QuestionType:
            merged: Dict[str, AttributeDescriptor] = {d.name: d for d in universal}
            for descriptor in per_type.get(question_type, ()):
                merged[descriptor.name] = descriptor
            table[question_type] = MappingProxyType(merged)
        self._table = MappingProxyType(table)

    @classmethod
    def default(cls) -> "AttributeSchema":
        """Build the schema from the bundled definition tables."""
        from .definitions import TYPE_ATTRIBUTES, UNIVERSAL_ATTRIBUTES

        return cls(UNIVERSAL_ATTRIBUTES, TYPE_ATTRIBUTES)

    # ========================================================================
    # Lookup
    # ========================================================================

    def attributes_for(self, question_type: TypeKey) -> Mapping[str, AttributeDescriptor]:
        """
        Get every attribute accepted by a question type.

        Args:
            question_type: QuestionType or its single-character code

        Returns:
            Read-only name -> descriptor mapping; empty for unknown codes
        """
        key = _coerce(question_type)
        if key is None:
            return _EMPTY
        return self._table[key]

    def get(self, question_type: TypeKey, name: str) -> Optional[AttributeDescriptor]:
        return self.attributes_for(question_type).get(name)

    def is_valid(self, question_type: TypeKey, name: str) -> bool:
        """True if the attribute name exists for this question type."""
        return name in self.attributes_for(question_type)

    def default_for(self, question_type: TypeKey, name: str) -> Optional[str]:
        descriptor = self.get(question_type, name)
        return None if descriptor is None else descriptor.default

    def question_types(self) -> List[QuestionType]:
        return list(self._table)

    def known_names(self) -> List[str]:
        """Every attribute name accepted by at least one question type, sorted."""
        names = set()
        for attributes in self._table.values():
            names.update(attributes)
        return sorted(names)

    # ========================================================================
    # Value checks
    # ========================================================================

    def is_non_default(self, question_type: TypeKey, name: str, value: Any) -> bool:
        """
        Check whether a value is worth exporting.

        Unknown attributes are never exported. An empty-string default is
        considered equal to None and to "".
        """
        default = self.default_for(question_type, name)
        if default is None:
            return False
        if default == "" and (value is None or value == ""):
            return False
        if value is None:
            value = ""
        return str(normalize_value(value)) != default

    def validate(self, question_type: TypeKey, name: str, value: Any) -> bool:
        """
        Validate a value against the attribute's primitive type.

        Returns:
            False for unknown attributes, composite values, or values that
            break the primitive type's constraint
        """
        descriptor = self.get(question_type, name)
        if descriptor is None:
            return False
        value = normalize_value(value)
        if isinstance(value, (list, dict)):
            return False
        if value is None:
            value = ""

        if descriptor.primitive is PrimitiveType.SWITCH:
            return value in ("0", "1")
        if descriptor.primitive is PrimitiveType.INTEGER:
            return value == "" or _is_integral_in_range(value, descriptor)
        if descriptor.primitive is PrimitiveType.SINGLESELECT:
            return value in descriptor.options
        return True


def _coerce(question_type: TypeKey) -> Optional[QuestionType]:
    if isinstance(question_type, QuestionType):
        return question_type
    if QuestionType.is_known(question_type):
        return QuestionType(question_type)
    return None


def _is_integral_in_range(value: str, descriptor: AttributeDescriptor) -> bool:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    if not math.isfinite(number) or not number.is_integer():
        return False
    if descriptor.min_value is not None and number < descriptor.min_value:
        return False
    if descriptor.max_value is not None and number > descriptor.max_value:
        return False
    return True


__all__ = ["AttributeSchema", "normalize_value"]
