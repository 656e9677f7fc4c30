"""Placeholder extraction, validation and substitution for pass templates.

Templates mark caller-supplied data with ``${KEY}`` tokens inside string
values. This module finds those tokens, checks a field-value map against
them and fills them in. All functions are pure.
"""

import re
import typing as t
from dataclasses import dataclass, field

PLACEHOLDER_PATTERN = re.compile(r"\$\{([^}]+)\}")


@dataclass
class PlaceholderValidationResult:
    """Outcome of checking field values against a template's placeholders."""

    is_valid: bool
    missing: list[str] = field(default_factory=list)
    unmatched: list[str] = field(default_factory=list)
    mapped: dict[str, t.Any] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)


def _iter_strings(tree: t.Any) -> t.Iterator[str]:
    if isinstance(tree, str):
        yield tree
    elif isinstance(tree, dict):
        for value in tree.values():
            yield from _iter_strings(value)
    elif isinstance(tree, list):
        for item in tree:
            yield from _iter_strings(item)


def extract_placeholders(tree: t.Any) -> list[str]:
    """Return the distinct placeholder names found in any string leaf.

    Names are returned in order of first appearance. Dictionary keys are
    not scanned.

    Args:
        tree: Any JSON-compatible value.

    Returns:
        Placeholder names without the ``${`` / ``}`` delimiters.
    """
    names: dict[str, None] = {}
    for text in _iter_strings(tree):
        for match in PLACEHOLDER_PATTERN.finditer(text):
            names.setdefault(match.group(1), None)
    return list(names)


def _is_blank(value: t.Any) -> bool:
    return value is None or value == ""


def validate_placeholder_mapping(
    tree: t.Any,
    field_values: t.Mapping[str, t.Any],
    required: t.Iterable[str] | None = None,
) -> PlaceholderValidationResult:
    """Check that field values cover a template's placeholders.

    Args:
        tree: The template document to scan.
        field_values: Caller-supplied values keyed by placeholder name.
        required: Placeholder names that must have a value. Defaults to
            every placeholder found in ``tree``.

    Returns:
        A PlaceholderValidationResult. Keys in ``field_values`` that match no
        placeholder are reported in ``unmatched`` and make the result invalid.
    """
    placeholders = extract_placeholders(tree)
    required_names = set(placeholders if required is None else required)

    result = PlaceholderValidationResult(is_valid=True)
    for name in placeholders:
        value = field_values.get(name)
        if name in required_names and _is_blank(value):
            result.missing.append(name)
            result.errors.append(f"Missing required field: {name}")
        elif name in field_values:
            result.mapped[name] = value

    known = set(placeholders)
    for name in field_values:
        if name not in known:
            result.unmatched.append(name)
            result.errors.append(f'Field "{name}" does not match any template placeholder')

    result.is_valid = not result.errors
    return result


def fill_placeholders(tree: t.Any, data: t.Mapping[str, t.Any]) -> t.Any:
    """Substitute ``${KEY}`` tokens in string leaves.

    Each string is scanned once. Tokens whose key is in ``data`` are replaced
    by the value (``None`` becomes an empty string); other tokens are kept
    verbatim. Replacement text is never rescanned, so a value that itself
    looks like ``${OTHER}`` stays literal.

    Args:
        tree: Any JSON-compatible value. It is not modified.
        data: Values keyed by placeholder name.

    Returns:
        A new tree with the substitutions applied.
    """

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in data:
            return match.group(0)
        value = data[key]
        return "" if value is None else str(value)

    if isinstance(tree, str):
        return PLACEHOLDER_PATTERN.sub(_replace, tree)
    if isinstance(tree, dict):
        return {key: fill_placeholders(value, data) for key, value in tree.items()}
    if isinstance(tree, list):
        return [fill_placeholders(item, data) for item in tree]
    return tree
