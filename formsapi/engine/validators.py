"""Per-kind validation of field definitions and submitted values.

The kind set is closed, so validators are plain functions collected in a
dispatch table built at import time. Base types are checked with strict
pydantic adapters; the layered `validationRules` are applied on top.
"""
import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import StrictBool, StrictFloat, StrictInt, StrictStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from formsapi.engine.conditional import parse_conditional
from formsapi.engine.errors import UnsupportedFieldKindError, ValidationError
from formsapi.models.form import FieldDefinition, FieldKind

logger = logging.getLogger(__name__)

REQUIRED_MESSAGE = "Required field"
INVALID_OPTION_MESSAGE = "Invalid option"
CALCULATED_VALUE_MESSAGE = "Calculated fields cannot accept manually supplied values"

_string = TypeAdapter(StrictStr)
_number = TypeAdapter(Union[StrictInt, StrictFloat])
_boolean = TypeAdapter(StrictBool)
_string_list = TypeAdapter(List[StrictStr])
_datetime = TypeAdapter(datetime)


def _check_type(adapter: TypeAdapter, value: Any, field: FieldDefinition, message: str) -> Any:
    try:
        return adapter.validate_python(value)
    except PydanticValidationError as e:
        raise ValidationError(field.id, message) from e


def _is_absent(value: Any) -> bool:
    return value is None


def parse_iso_date(value: str) -> datetime:
    """Parse an ISO-8601 date or datetime; naive values are taken as UTC."""
    parsed = _datetime.validate_python(value.strip())
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _validate_text(field: FieldDefinition, value: Any) -> None:
    if _is_absent(value) or value == "":
        if field.required:
            raise ValidationError(field.id, REQUIRED_MESSAGE)
        if _is_absent(value):
            return

    text = _check_type(_string, value, field, "Expected a text value")

    min_length = field.rule("minLength")
    if min_length is not None and len(text) < min_length.value:
        raise ValidationError(
            field.id, min_length.message or f"Minimum length is {min_length.value}"
        )

    max_length = field.rule("maxLength")
    if max_length is not None and len(text) > max_length.value:
        raise ValidationError(
            field.id, max_length.message or f"Maximum length is {max_length.value}"
        )

    pattern = field.rule("pattern")
    if pattern is not None and not re.search(pattern.value, text):
        raise ValidationError(field.id, pattern.message or "Invalid format")


def _validate_number(field: FieldDefinition, value: Any) -> None:
    if _is_absent(value):
        if field.required:
            raise ValidationError(field.id, REQUIRED_MESSAGE)
        return

    if isinstance(value, bool):
        raise ValidationError(field.id, "Expected a number")
    number = _check_type(_number, value, field, "Expected a number")
    if isinstance(number, float) and not math.isfinite(number):
        raise ValidationError(field.id, "Expected a finite number")

    if field.numeric_format == "integer" and isinstance(number, float) and not number.is_integer():
        raise ValidationError(field.id, "Expected an integer")

    for rule in field.validation_rules:
        if rule.kind == "min" and number < rule.value:
            raise ValidationError(field.id, rule.message or f"Minimum value is {rule.value}")
        if rule.kind == "max" and number > rule.value:
            raise ValidationError(field.id, rule.message or f"Maximum value is {rule.value}")


def _validate_boolean(field: FieldDefinition, value: Any) -> None:
    if _is_absent(value):
        if field.required:
            raise ValidationError(field.id, REQUIRED_MESSAGE)
        return
    _check_type(_boolean, value, field, "Expected a boolean")


def _validate_date(field: FieldDefinition, value: Any) -> None:
    if _is_absent(value) or value == "":
        if field.required:
            raise ValidationError(field.id, REQUIRED_MESSAGE)
        return

    text = _check_type(_string, value, field, "Invalid date")
    try:
        date = parse_iso_date(text)
    except PydanticValidationError as e:
        raise ValidationError(field.id, "Invalid date") from e

    if field.min_date and date < parse_iso_date(field.min_date):
        raise ValidationError(field.id, f"Date must be on or after {field.min_date}")
    if field.max_date and date > parse_iso_date(field.max_date):
        raise ValidationError(field.id, f"Date must be on or before {field.max_date}")


def _validate_select(field: FieldDefinition, value: Any) -> None:
    allowed = [option.value for option in field.options or []]

    if field.multiple:
        if _is_absent(value) or value == []:
            if field.required:
                raise ValidationError(field.id, REQUIRED_MESSAGE)
            return
        selected = _check_type(_string_list, value, field, "Expected a list of options")
        if any(item not in allowed for item in selected):
            raise ValidationError(field.id, INVALID_OPTION_MESSAGE)
        return

    if _is_absent(value):
        if field.required:
            raise ValidationError(field.id, REQUIRED_MESSAGE)
        return
    selected = _check_type(_string, value, field, INVALID_OPTION_MESSAGE)
    if selected not in allowed:
        raise ValidationError(field.id, INVALID_OPTION_MESSAGE)


def _validate_calculated(field: FieldDefinition, value: Any) -> None:
    if not _is_absent(value):
        raise ValidationError(field.id, CALCULATED_VALUE_MESSAGE)
    _check_calculated_definition(field)


def _check_calculated_definition(field: FieldDefinition) -> None:
    if not field.formula or field.dependencies is None:
        raise ValidationError(
            field.id, "Calculated fields must define both formula and dependencies"
        )


def _check_rule_value(field: FieldDefinition, rule_kind: str, number_check: Callable[[Any], bool]) -> None:
    rule = field.rule(rule_kind)
    if rule is not None and not number_check(rule.value):
        raise ValidationError(field.id, f"Invalid value for rule {rule_kind}: {rule.value!r}")


def _is_length(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_text_definition(field: FieldDefinition) -> None:
    _check_rule_value(field, "minLength", _is_length)
    _check_rule_value(field, "maxLength", _is_length)
    pattern = field.rule("pattern")
    if pattern is not None:
        try:
            re.compile(pattern.value)
        except (re.error, TypeError) as e:
            raise ValidationError(field.id, f"Invalid pattern: {pattern.value!r}") from e


def _check_number_definition(field: FieldDefinition) -> None:
    for rule in field.validation_rules:
        if rule.kind in ("min", "max") and not _is_number(rule.value):
            raise ValidationError(field.id, f"Invalid value for rule {rule.kind}: {rule.value!r}")


def _check_select_definition(field: FieldDefinition) -> None:
    if not field.options:
        raise ValidationError(field.id, "Select fields must define options")


def _check_date_definition(field: FieldDefinition) -> None:
    bounds = {}
    for name, bound in (("minDate", field.min_date), ("maxDate", field.max_date)):
        if bound is None:
            continue
        try:
            bounds[name] = parse_iso_date(bound)
        except PydanticValidationError as e:
            raise ValidationError(field.id, f"Invalid {name}: {bound}") from e
    if len(bounds) == 2 and bounds["minDate"] > bounds["maxDate"]:
        raise ValidationError(field.id, "minDate must not be after maxDate")


def _no_definition_check(field: FieldDefinition) -> None:
    return None


_VALUE_VALIDATORS: Dict[FieldKind, Callable[[FieldDefinition, Any], None]] = {
    FieldKind.TEXT: _validate_text,
    FieldKind.NUMBER: _validate_number,
    FieldKind.BOOLEAN: _validate_boolean,
    FieldKind.SELECT: _validate_select,
    FieldKind.DATE: _validate_date,
    FieldKind.CALCULATED: _validate_calculated,
}

_DEFINITION_CHECKS: Dict[FieldKind, Callable[[FieldDefinition], None]] = {
    FieldKind.TEXT: _check_text_definition,
    FieldKind.NUMBER: _check_number_definition,
    FieldKind.BOOLEAN: _no_definition_check,
    FieldKind.SELECT: _check_select_definition,
    FieldKind.DATE: _check_date_definition,
    FieldKind.CALCULATED: _check_calculated_definition,
}


def resolve_kind(field: FieldDefinition) -> FieldKind:
    try:
        return FieldKind(field.kind)
    except ValueError:
        raise UnsupportedFieldKindError(field.kind, field_id=field.id) from None


class FieldValidator:
    """Validates field definitions and the values submitted for them.

    Neither method mutates its arguments; failures raise `ValidationError`
    (or `UnsupportedFieldKindError` / `InvalidConditionalError`).
    """

    def validate(self, field: FieldDefinition, value: Optional[Any] = None) -> None:
        kind = resolve_kind(field)
        logger.debug(f"Validating value of field {field.id} ({kind.value})")
        _VALUE_VALIDATORS[kind](field, value)

    def validate_definition(self, field: FieldDefinition) -> None:
        kind = resolve_kind(field)
        logger.debug(f"Validating definition of field {field.id} ({kind.value})")
        if field.conditional is not None:
            parse_conditional(field.conditional, field_id=field.id)
        _DEFINITION_CHECKS[kind](field)
