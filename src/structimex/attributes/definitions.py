"""
Attribute definition tables.

UNIVERSAL_ATTRIBUTES apply to every question type. TYPE_ATTRIBUTES lists
the type-specific entries; when a name appears in both, the type-specific
entry wins (see AttributeSchema).

Values mirror the defaults of the survey platform's question configuration
files. Defaults are always strings; "" means "no value set".
"""

from typing import Dict, List, Sequence

from ..question_types import QuestionType
from .descriptor import AttributeDescriptor, PrimitiveType


def _switch(name: str, default: str = "0", category: str = "Display", label: str = "") -> AttributeDescriptor:
    return AttributeDescriptor(name, default, PrimitiveType.SWITCH, ("0", "1"), category, label=label)


def _integer(
    name: str,
    default: str = "",
    category: str = "Input",
    min_value=None,
    max_value=None,
    label: str = "",
) -> AttributeDescriptor:
    return AttributeDescriptor(
        name,
        default,
        PrimitiveType.INTEGER,
        category=category,
        min_value=min_value,
        max_value=max_value,
        label=label,
    )


def _select(
    name: str, options: Sequence[str], default: str, category: str = "Display", label: str = ""
) -> AttributeDescriptor:
    return AttributeDescriptor(name, default, PrimitiveType.SINGLESELECT, tuple(options), category, label=label)


def _text(name: str, default: str = "", category: str = "Display", label: str = "") -> AttributeDescriptor:
    return AttributeDescriptor(name, default, PrimitiveType.TEXT, category=category, label=label)


def _textarea(name: str, category: str = "Logic", label: str = "") -> AttributeDescriptor:
    return AttributeDescriptor(name, "", PrimitiveType.TEXTAREA, category=category, label=label)


_WIDTHS = [""] + [str(i) for i in range(1, 13)]
_ANSWER_ORDER = ["normal", "random", "alphabetical"]
_OTHER_POSITION = ["beginning", "default", "end", "specific"]


# ============================================================================
# Universal subset
# ============================================================================

UNIVERSAL_ATTRIBUTES: List[AttributeDescriptor] = [
    _switch("hidden", label="Always hidden"),
    _switch("hide_tip", label="Hide tip"),
    _text("cssclass", label="CSS class(es)"),
    _switch("page_break", category="Other", label="Insert page break in printable view"),
    _text("random_group", category="Logic", label="Randomization group name"),
    _textarea("em_validation_q", label="Question validation equation"),
    _textarea("em_validation_q_tip", label="Question validation tip"),
    _switch("statistics_showgraph", default="1", category="Statistics", label="Display chart"),
    _select(
        "statistics_graphtype",
        ["0", "1", "2", "3", "4", "5"],
        "0",
        category="Statistics",
        label="Chart type",
    ),
    # Timer
    _integer("time_limit", category="Timer", min_value=0, label="Time limit (seconds)"),
    _select("time_limit_action", ["1", "2", "3"], "1", category="Timer", label="Time limit action"),
    _switch("time_limit_disable_next", category="Timer", label="Time limit disable next"),
    _switch("time_limit_disable_prev", category="Timer", label="Time limit disable prev"),
    _textarea("time_limit_countdown_message", category="Timer"),
    _textarea("time_limit_timer_style", category="Timer"),
    _integer("time_limit_message_delay", category="Timer", min_value=0),
    _textarea("time_limit_message", category="Timer"),
    _textarea("time_limit_message_style", category="Timer"),
    _integer("time_limit_warning", category="Timer", min_value=0),
    _integer("time_limit_warning_display_time", category="Timer", min_value=0),
    _textarea("time_limit_warning_message", category="Timer"),
    _textarea("time_limit_warning_style", category="Timer"),
    _integer("time_limit_warning_2", category="Timer", min_value=0),
    _integer("time_limit_warning_2_display_time", category="Timer", min_value=0),
    _textarea("time_limit_warning_2_message", category="Timer"),
    _textarea("time_limit_warning_2_style", category="Timer"),
]


# ============================================================================
# Shared type-specific fragments
# ============================================================================

_OTHER_OPTIONS = [
    _switch("other_comment_mandatory", category="Logic"),
    _switch("other_numbers_only", category="Logic"),
    _select("other_position", _OTHER_POSITION, "default", label="Position for option 'Other:'"),
    _text("other_position_code"),
    _text("other_replace_text", label="Label for 'Other:' option"),
]

_LIST_ATTRIBUTES = [
    _select("answer_order", _ANSWER_ORDER, "normal", label="Answer options order"),
    AttributeDescriptor("display_columns", "", PrimitiveType.COLUMNS, label="Display columns"),
    _switch("assessment_value", category="Statistics"),
    _switch("scale_export", category="Statistics"),
    *_OTHER_OPTIONS,
]

_ARRAY_ATTRIBUTES = [
    _integer("answer_width", category="Display", min_value=1, max_value=100, label="(Sub-)question width"),
    _switch("random_order", category="Display", label="Random order"),
]

_SUBQUESTION_VALIDATION = [
    _textarea("em_validation_sq", label="Sub-question validation equation"),
    _textarea("em_validation_sq_tip", label="Sub-question validation tip"),
]

_AFFIXES = [
    _text("prefix", label="Answer prefix"),
    _text("suffix", label="Answer suffix"),
]


# ============================================================================
# Per-type tables
# ============================================================================

TYPE_ATTRIBUTES: Dict[QuestionType, List[AttributeDescriptor]] = {
    QuestionType.LONG_FREE_TEXT: [
        _select("text_input_width", _WIDTHS, "", label="Text input box width"),
        _integer("input_size", category="Display", min_value=1),
        _integer("display_rows", category="Display", min_value=1, label="Display rows"),
        _integer("maximum_chars", min_value=1, label="Maximum characters"),
        _switch("numbers_only", category="Other", label="Numbers only"),
    ],
    QuestionType.LIST_RADIO: list(_LIST_ATTRIBUTES),
    QuestionType.LIST_FLEXIBLE: list(_LIST_ATTRIBUTES),
    QuestionType.MULTIPLE_CHOICE: [
        _integer("min_answers", min_value=0, label="Minimum answers"),
        _integer("max_answers", min_value=0, label="Maximum answers"),
        _select("answer_order", _ANSWER_ORDER, "normal", label="Answer options order"),
        _text("array_filter", category="Logic", label="Array filter"),
        _select("array_filter_style", ["0", "1"], "0", category="Logic", label="Array filter style"),
        _text("array_filter_exclude", category="Logic", label="Array filter exclusion"),
        _text("exclude_all_others", category="Logic", label="Exclusive option"),
        *_OTHER_OPTIONS[:4],
        AttributeDescriptor("other_replace_text", "", PrimitiveType.TEXTAREA, label="Label for 'Other:' option"),
    ],
    QuestionType.SHORT_FREE_TEXT: [
        _select("text_input_width", _WIDTHS, "", label="Text input box width"),
        _integer("input_size", category="Display", min_value=1),
        _integer("maximum_chars", min_value=1, label="Maximum characters"),
        _switch("numbers_only", category="Other", label="Numbers only"),
        *_AFFIXES,
        _select("location_city", ["0", "1"], "0", category="Location"),
        _select("location_country", ["0", "1"], "0", category="Location"),
        _text("location_defaultcoordinates", category="Location"),
        _text("location_mapheight", "300", category="Location"),
        _select("location_mapservice", ["0", "1", "100"], "0", category="Location"),
        _text("location_mapwidth", "500", category="Location"),
        _text("location_mapzoom", "11", category="Location"),
        _select("location_nodefaultfromip", ["0", "1"], "0", category="Location"),
        _select("location_postal", ["0", "1"], "0", category="Location"),
        _select("location_state", ["0", "1"], "0", category="Location"),
    ],
    QuestionType.LIST_DROPDOWN: [
        _text("category_separator"),
        _select("answer_order", _ANSWER_ORDER, "normal", label="Answer options order"),
        _integer("dropdown_size", category="Display", min_value=1),
        _text("dropdown_prefix"),
        *_OTHER_OPTIONS,
    ],
    QuestionType.ARRAY: [
        *_ARRAY_ATTRIBUTES,
        _switch("array_filter_style", category="Logic", label="Array filter style"),
        _integer("repeat_headings", category="Display", min_value=0, label="Repeat headers"),
        _switch("use_dropdown", label="Use dropdown presentation"),
    ],
    QuestionType.MULTIPLE_SHORT_TEXT: [
        _select("text_input_width", _WIDTHS, "", label="Text input box width"),
        _select("text_input_columns", _WIDTHS, ""),
        _select("label_input_columns", ["", "hidden"] + _WIDTHS[1:], ""),
        _switch("numbers_only", category="Other", label="Numbers only"),
        *_AFFIXES,
        *_SUBQUESTION_VALIDATION,
    ],
    QuestionType.MULTIPLE_NUMERICAL: [
        _text("equals_num_value", category="Input"),
        _text("max_num_value", category="Input"),
        _text("min_num_value", category="Input"),
        _switch("num_value_int_only", category="Input", label="Integer only"),
        *_AFFIXES,
        *_SUBQUESTION_VALIDATION,
    ],
    QuestionType.NUMERICAL: [
        _integer("min_num_value_n", label="Minimum value"),
        _integer("max_num_value_n", label="Maximum value"),
        _integer("min_answers", min_value=0, label="Minimum answers"),
        _integer("max_answers", min_value=0, label="Maximum answers"),
        _switch("num_value_int_only", category="Input", label="Integer only"),
        _text("placeholder"),
        *_AFFIXES,
        _text("printable_help"),
        _switch("public_statistics", category="Statistics"),
        *_SUBQUESTION_VALIDATION,
    ],
    QuestionType.TEXT_DISPLAY: [],
    QuestionType.YES_NO: [],
    QuestionType.GENDER: [],
    QuestionType.FIVE_POINT_CHOICE: [],
    QuestionType.LANGUAGE_SWITCH: [],
    QuestionType.ARRAY_DUAL_SCALE: [
        *_ARRAY_ATTRIBUTES,
        _integer("repeat_headings", category="Display", min_value=0, label="Repeat headers"),
        _text("dualscale_headerA"),
        _text("dualscale_headerB"),
    ],
    QuestionType.DATE: [
        _text("date_format", category="Input", label="Date/Time format"),
        _text("date_max", category="Input", label="Maximum date"),
        _text("date_min", category="Input", label="Minimum date"),
        _switch("dropdown_dates", label="Display dropdown boxes"),
        _integer("dropdown_dates_minute_step", "1", min_value=1, label="Minute step interval"),
        _select("dropdown_dates_month_style", ["0", "1", "2"], "0"),
        _switch("reverse", label="Reverse answer order"),
    ],
    QuestionType.ARRAY_FIVE_POINT: list(_ARRAY_ATTRIBUTES),
    QuestionType.ARRAY_TEN_POINT: list(_ARRAY_ATTRIBUTES),
    QuestionType.ARRAY_YES_UNCERTAIN_NO: list(_ARRAY_ATTRIBUTES),
    QuestionType.ARRAY_INCREASE_SAME_DECREASE: list(_ARRAY_ATTRIBUTES),
    QuestionType.ARRAY_BY_COLUMN: [
        *_ARRAY_ATTRIBUTES,
        _text("answer_width_bycolumn"),
    ],
    QuestionType.LIST_WITH_COMMENT: [
        _select("answer_order", ["normal", "random"], "normal", label="Answer options order"),
        *_OTHER_OPTIONS,
    ],
    QuestionType.MULTIPLE_CHOICE_WITH_COMMENTS: [
        _integer("choice_input_columns", category="Display", min_value=1),
        _switch("commented_checkbox", category="Logic"),
        _switch("commented_checkbox_auto", category="Logic"),
        *_OTHER_OPTIONS[:4],
        _integer("min_answers", min_value=0, label="Minimum answers"),
        _integer("max_answers", min_value=0, label="Maximum answers"),
    ],
    QuestionType.RANKING: [
        _text("choice_title"),
        _integer("min_answers", min_value=0, label="Minimum answers"),
        _integer("max_answers", min_value=0, label="Maximum answers"),
        _integer("max_subquestions", min_value=0),
        _text("rank_title"),
    ],
    QuestionType.HUGE_FREE_TEXT: [
        _integer("maximum_chars", min_value=1, label="Maximum characters"),
        _integer("display_rows", "5", category="Display", min_value=1, label="Display rows"),
        _switch("numbers_only", category="Other", label="Numbers only"),
    ],
    QuestionType.FILE_UPLOAD: [
        _integer("max_filesize", min_value=1, label="Maximum file size allowed (in KB)"),
        _text("allowed_filetypes", label="Allowed file types"),
        _switch("show_title", category="Other"),
        _switch("show_comment", category="Other"),
    ],
    QuestionType.EQUATION: [
        _switch("numbers_only", category="Other", label="Numbers only"),
    ],
    QuestionType.ARRAY_NUMBERS: [
        *_ARRAY_ATTRIBUTES,
        _switch("input_boxes", label="Text inputs"),
        _switch("multiflexible_checkbox", label="Checkbox layout"),
        _text("multiflexible_max", category="Input", label="Maximum value"),
        _text("multiflexible_min", category="Input", label="Minimum value"),
        _integer("multiflexible_step", "1", category="Input", min_value=1, label="Step value"),
        _text("parent_order"),
        _integer("repeat_headings", category="Display", min_value=0, label="Repeat headers"),
        *_SUBQUESTION_VALIDATION,
    ],
    QuestionType.ARRAY_TEXTS: [
        *_ARRAY_ATTRIBUTES,
        _integer("repeat_headings", category="Display", min_value=0, label="Repeat headers"),
        _switch("numbers_only", category="Other", label="Numbers only"),
        _text("placeholder"),
    ],
}


__all__ = ["UNIVERSAL_ATTRIBUTES", "TYPE_ATTRIBUTES"]
