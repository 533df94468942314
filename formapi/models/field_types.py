"""Shared enumerations for form fields and statuses.

Every validator imports these; do not re-declare them elsewhere.
"""

FIELD_TYPES = frozenset(
    {
        "text",
        "email",
        "number",
        "textarea",
        "select",
        "radio",
        "checkbox",
        "date",
        "time",
        "file",
    }
)

# Fields that only make sense with a list of options
CHOICE_FIELD_TYPES = frozenset({"select", "radio", "checkbox"})

FORM_STATUSES = ("draft", "published", "closed")

# "all" is a list-query sentinel meaning no status filter
QUERY_STATUSES = FORM_STATUSES + ("all",)

DEFAULT_FORM_STATUS = "draft"


def is_allowed_type(field_type) -> bool:
    return isinstance(field_type, str) and field_type in FIELD_TYPES
