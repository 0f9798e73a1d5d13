from typing import Iterable, Optional


class FormsError(Exception):
    """Base class for every error raised by the forms engine.

    `code` is stable and meant to be inspected by callers (the HTTP layer maps
    it to a status code); `message` is human readable.
    """

    code = "forms_error"

    def __init__(self, message: str, field_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field_id = field_id

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "field": self.field_id}


class ValidationError(FormsError):
    code = "validation_error"

    def __init__(self, field_id: Optional[str], message: str):
        super().__init__(message, field_id=field_id)


class UnsupportedFieldKindError(FormsError):
    code = "unsupported_field_kind"

    def __init__(self, kind: str, field_id: Optional[str] = None):
        super().__init__(f"Unsupported field type: {kind}", field_id=field_id)
        self.kind = kind


class UnknownNodeError(FormsError):
    code = "unknown_node"

    def __init__(self, node: str):
        super().__init__(f"Node {node} not found", field_id=node)
        self.node = node


class CircularDependencyError(FormsError):
    code = "circular_dependency"

    def __init__(self, field_id: str, cycle: Optional[Iterable[str]] = None):
        self.cycle = list(cycle or [])
        message = f"Circular dependency detected involving field: {field_id}"
        if self.cycle:
            message += f" ({' -> '.join(self.cycle)})"
        super().__init__(message, field_id=field_id)


class MissingDependencyError(FormsError):
    code = "missing_dependency"

    def __init__(self, field_id: str, missing: Iterable[str]):
        self.missing = list(missing)
        super().__init__(
            f"Missing dependencies for {field_id}: {', '.join(self.missing)}",
            field_id=field_id,
        )


class FormulaEvaluationError(FormsError):
    code = "formula_evaluation_error"

    def __init__(self, field_id: str, formula: str):
        super().__init__(
            f"Formula evaluation failed for {field_id}: {formula}", field_id=field_id
        )
        self.formula = formula


class InvalidConditionalError(FormsError):
    code = "invalid_conditional"

    def __init__(self, expression: str, field_id: Optional[str] = None):
        super().__init__(
            f"Invalid conditional expression: {expression}", field_id=field_id
        )
        self.expression = expression


class NotFoundError(FormsError):
    code = "not_found"

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class InactiveFormError(FormsError):
    code = "inactive_form"

    def __init__(self, form_id: str):
        super().__init__(f"Form {form_id} is inactive")
        self.form_id = form_id


class InactiveResponseError(FormsError):
    code = "inactive_response"

    def __init__(self, response_id: str):
        super().__init__(f"Response {response_id} is inactive")
        self.response_id = response_id


class ProtectedFormError(FormsError):
    code = "protected_form"

    def __init__(self, form_id: str):
        super().__init__(f"Form {form_id} is protected and cannot be deleted")
        self.form_id = form_id


class SchemaVersionConflictError(FormsError):
    code = "schema_version_conflict"

    def __init__(self, requested: int, current: int):
        super().__init__(
            f"Schema version {requested} is not greater than current version {current}"
        )
        self.requested = requested
        self.current = current


class SchemaVersionMismatchError(FormsError):
    code = "schema_version_mismatch"

    def __init__(self, requested: int, current: int):
        super().__init__(
            f"Schema version {requested} does not match current version {current}"
        )
        self.requested = requested
        self.current = current
