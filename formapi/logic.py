"""Conditional logic for multi-page forms.

Rules are plain dicts as stored on the form:

* field visibility: ``field["visibilityRules"] = [{"when": [cond, ...], "action": "show" | "hide"}]``
* page skips: ``page["logic"] = {"skipTo": [{"when": [cond, ...], "toPageId": "page-2"}]}``

where ``cond`` is ``{"field": <field id>, "op": <operator>, "value": <any>}``.
Conditions inside one ``when`` are AND-ed; the first matching rule wins.
"""
import math
from typing import Any, Dict, List, Optional, Set


def _number(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def _contains(left, right) -> bool:
    if isinstance(left, list):
        return right in left
    if isinstance(left, str):
        return str(right).lower() in left.lower()
    return False


OPERATORS = {
    "eq": lambda left, right: left == right,
    "neq": lambda left, right: left != right,
    "gt": lambda left, right: _number(left) > _number(right),
    "lt": lambda left, right: _number(left) < _number(right),
    "contains": _contains,
    "in": lambda left, right: isinstance(right, list) and left in right,
}


def condition_holds(cond: Dict[str, Any], data: Dict[str, Any]) -> bool:
    if not isinstance(cond, dict):
        return False
    op, field_id = cond.get("op"), cond.get("field")
    if not isinstance(op, str) or not isinstance(field_id, str) or op not in OPERATORS:
        return False
    return OPERATORS[op](data.get(field_id), cond.get("value"))


def _all_hold(conditions, data) -> bool:
    if not isinstance(conditions, list):
        return False
    return all(condition_holds(cond, data) for cond in conditions)


def is_field_visible(field: Dict[str, Any], data: Dict[str, Any]) -> bool:
    rules = field.get("visibilityRules")
    if not isinstance(rules, list):
        return True
    for rule in rules:
        if isinstance(rule, dict) and _all_hold(rule.get("when", []), data):
            return rule.get("action", "show") == "show"
    return True


def _id_of(item) -> Optional[str]:
    """The string ``id`` of a stored page or field, None for anything else."""
    if isinstance(item, dict) and isinstance(item.get("id"), str):
        return item["id"]
    return None


def reachable_page_ids(pages: List[Dict[str, Any]], data: Dict[str, Any]) -> Set[str]:
    """Walk pages in order, following the first matching skip rule on each."""
    index = {_id_of(page): i for i, page in enumerate(pages) if _id_of(page) is not None}
    reachable = set()
    i = 0
    while 0 <= i < len(pages):
        page_id = _id_of(pages[i])
        if page_id is None:
            i += 1
            continue
        if page_id in reachable:
            break  # skip rules formed a loop
        reachable.add(page_id)

        logic = pages[i].get("logic") or {}
        skips = logic.get("skipTo") if isinstance(logic, dict) else None
        target = None
        for rule in skips if isinstance(skips, list) else []:
            if isinstance(rule, dict) and _all_hold(rule.get("when", []), data):
                to_page = rule.get("toPageId")
                if isinstance(to_page, str) and to_page in index:
                    target = index[to_page]
                    break
        i = target if target is not None else i + 1
    return reachable


def visible_field_ids(pages: List[Dict[str, Any]], data: Dict[str, Any]) -> Set[str]:
    reachable = reachable_page_ids(pages, data)
    visible = set()
    for page in pages:
        if _id_of(page) not in reachable:
            continue
        page_fields = page.get("fields")
        for field in page_fields if isinstance(page_fields, list) else []:
            if _id_of(field) is not None and is_field_visible(field, data):
                visible.add(field["id"])
    return visible


def is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return not value
    return False


def first_missing_required(
    fields: List[Dict[str, Any]], pages: List[Dict[str, Any]], data: Dict[str, Any]
) -> Optional[Dict[str, Any]]:
    """Return the first required field that is visible but left blank."""
    visible = visible_field_ids(pages, data)
    for field in fields:
        field_id = _id_of(field)
        if field_id is None or not field.get("required"):
            continue
        if field_id in visible and is_blank(data.get(field_id)):
            return field
    return None
