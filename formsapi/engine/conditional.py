from typing import Any, Mapping, Optional, Tuple

from formsapi.engine.errors import InvalidConditionalError


def parse_conditional(expression: str, field_id: Optional[str] = None) -> Tuple[str, str]:
    """Split `fieldId=literal` into its two parts."""
    parts = expression.split("=")
    if len(parts) != 2 or not all(parts):
        raise InvalidConditionalError(expression, field_id=field_id)
    return parts[0], parts[1]


def evaluate_conditional(expression: Optional[str], values: Mapping[str, Any], field_id: Optional[str] = None) -> bool:
    """Return True when the field carrying `expression` is in scope for `values`."""
    if expression is None:
        return True
    target, literal = parse_conditional(expression, field_id=field_id)
    submitted = values.get(target)
    # strict string comparison, no coercion of numbers or booleans
    return isinstance(submitted, str) and submitted == literal
