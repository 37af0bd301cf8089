"""Question attribute schema and language classification."""

from .descriptor import AttributeDescriptor, PrimitiveType
from .languages import AttributeLanguageClassifier, SeparatedAttributes
from .schema import AttributeSchema, normalize_value

__all__ = [
    "AttributeDescriptor",
    "PrimitiveType",
    "AttributeSchema",
    "normalize_value",
    "AttributeLanguageClassifier",
    "SeparatedAttributes",
]
