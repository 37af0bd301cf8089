"""
Global versus language-specific attribute classification.

Global attributes hold one value shared by all survey languages; they are
stored with an empty language. Language-specific attributes hold one
value per survey language.

The two name sets are disjoint. Any name in neither set is treated as
global so an unknown attribute is never fanned out over languages.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional

GLOBAL_ATTRIBUTES: FrozenSet[str] = frozenset(
    [
        # Display
        "hide_tip",
        "hidden",
        "cssclass",
        "display_columns",
        "text_input_width",
        "text_input_columns",
        "input_size",
        "display_rows",
        "maximum_chars",
        "page_break",
        # Logic
        "mandatory",
        "other",
        "answer_order",
        "random_order",
        "assessment_value",
        "code",
        # Input validation
        "numbers_only",
        "num_value_int_only",
        "min_answers",
        "max_answers",
        "min_num_value",
        "max_num_value",
        "multiflexible_min",
        "multiflexible_max",
        "multiflexible_step",
        "slider_min",
        "slider_max",
        "slider_step",
        "slider_default",
        "slider_orientation",
        "slider_handle",
        "slider_layout",
        "slider_separator",
        "slider_showminmax",
        # Display behaviour
        "dropdown_size",
        "dropdown_prefix",
        "dropdown_separators",
        "exclude_all_others",
        "exclude_all_others_auto",
        "hidden_answer",
        "show_totals",
        "show_grand_total",
        "repeat_headings",
        "use_dropdown",
        # Statistics
        "public_statistics",
        "statistics_showgraph",
        "statistics_graphtype",
        "statistics_showmap",
        # Timer settings
        "time_limit",
        "time_limit_action",
        "time_limit_disable_next",
        "time_limit_disable_prev",
        "time_limit_message_delay",
        "time_limit_warning",
        "time_limit_warning_display_time",
        "time_limit_warning_2",
        "time_limit_warning_2_display_time",
        # File upload
        "max_filesize",
        "allowed_filetypes",
        # Advanced
        "em_validation_q",
        "em_validation_sq",
        "random_group",
        "save_as_default",
        "clear_default",
        "array_filter",
        "array_filter_style",
        "array_filter_exclude",
        "choice_title",
        "choice_title_display",
        "equals_num_value",
        "min_num_value_n",
        "max_num_value_n",
        "multiflexible_checkbox",
        "reverse",
        "value_range_allows_missing",
        "em_class",
    ]
)

LANGUAGE_SPECIFIC_ATTRIBUTES: FrozenSet[str] = frozenset(
    [
        # User-facing text
        "prefix",
        "suffix",
        "other_replace_text",
        "other_comment_mandatory",
        "other_numbers_only",
        "printable_help",
        "placeholder",
        # Validation messages
        "em_validation_q_tip",
        "em_validation_sq_tip",
        "validation_message",
        "fixnum_message",
        "choice_help",
        "choice_input_columns",
        # Timer messages
        "time_limit_message",
        "time_limit_warning_message",
        "time_limit_warning_2_message",
        "time_limit_countdown_message",
        "time_limit_timer_style",
        "time_limit_message_style",
        "time_limit_warning_style",
        "time_limit_warning_2_style",
        # Display text
        "slider_min_text",
        "slider_max_text",
        "dropdown_prepostfix",
        "answer_width",
        "label_input_columns",
        "show_comment",
        "show_title",
        "scale_export",
        "category_separator",
        "dualscale_headerA",
        "dualscale_headerB",
        "rank_title",
    ]
)


@dataclass
class SeparatedAttributes:
    """Result of splitting an attribute map by storage kind."""

    global_: Dict[str, Any] = field(default_factory=dict)
    language_specific: Dict[str, Any] = field(default_factory=dict)


class AttributeLanguageClassifier:
    """
    Decides whether an attribute is global or language-specific.

    Args:
        global_names: Names stored once per entity
        language_names: Names stored once per language

    Raises:
        ValueError: If the two sets overlap
    """

    def __init__(
        self,
        global_names: Optional[Iterable[str]] = None,
        language_names: Optional[Iterable[str]] = None,
    ):
        self._global = frozenset(GLOBAL_ATTRIBUTES if global_names is None else global_names)
        self._language = frozenset(
            LANGUAGE_SPECIFIC_ATTRIBUTES if language_names is None else language_names
        )
        overlap = self._global & self._language
        if overlap:
            raise ValueError(f"Attributes classified both ways: {', '.join(sorted(overlap))}")

    def is_language_specific(self, name: str) -> bool:
        return name in self._language

    def is_global(self, name: str) -> bool:
        return not self.is_language_specific(name)

    def is_known(self, name: str) -> bool:
        return name in self._global or name in self._language

    def separate(self, attributes: Mapping[str, Any]) -> SeparatedAttributes:
        """
        Split a name -> value map into global and language-specific parts.

        Insertion order of the input is kept in both parts.
        """
        result = SeparatedAttributes()
        for name, value in attributes.items():
            if self.is_language_specific(name):
                result.language_specific[name] = value
            else:
                result.global_[name] = value
        return result

    @property
    def global_names(self) -> FrozenSet[str]:
        return self._global

    @property
    def language_specific_names(self) -> FrozenSet[str]:
        return self._language


__all__ = [
    "GLOBAL_ATTRIBUTES",
    "LANGUAGE_SPECIFIC_ATTRIBUTES",
    "SeparatedAttributes",
    "AttributeLanguageClassifier",
]
