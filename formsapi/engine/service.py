"""Form lifecycle: creation, schema updates, submissions and soft deletes.

Every operation validates completely before its single repository write, so
a failure never leaves a partially saved form or response behind.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from formsapi import audit
from formsapi.audit import AuditSink, LoggingAuditSink
from formsapi.engine.conditional import evaluate_conditional
from formsapi.engine.errors import (
    CircularDependencyError,
    InactiveFormError,
    InactiveResponseError,
    NotFoundError,
    ProtectedFormError,
    SchemaVersionConflictError,
    SchemaVersionMismatchError,
    ValidationError,
)
from formsapi.engine.formula import FormulaEvaluator
from formsapi.engine.graph import DependencyGraph
from formsapi.engine.validators import FieldValidator
from formsapi.models.form import (
    FieldDefinition,
    Form,
    FormIn,
    FormListParams,
    FormSchemaUpdate,
    Response,
    ResponseListParams,
)
from formsapi.repositories.base import FormRepository

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_dependency_graph(fields: List[FieldDefinition]) -> DependencyGraph:
    """Graph with one node per field and an edge for every declared dependency."""
    graph = DependencyGraph()
    for field in fields:
        graph.add_node(field.id)
    for field in fields:
        for dependency in field.dependencies or []:
            graph.add_edge(field.id, dependency)
    return graph


def check_fields(fields: List[FieldDefinition]) -> None:
    """Validate field definitions and reject dependency cycles."""
    validator = FieldValidator()
    seen = set()
    for field in fields:
        if field.id in seen:
            raise ValidationError(field.id, f"Duplicate field id: {field.id}")
        seen.add(field.id)
        validator.validate_definition(field)

    cycle = build_dependency_graph(fields).find_cycle()
    if cycle:
        raise CircularDependencyError(cycle[0], cycle)


def calculation_order(fields: List[FieldDefinition]) -> List[FieldDefinition]:
    """Calculated fields ordered so each one follows the calculated fields it uses."""
    calculated = {field.id: field for field in fields if field.is_calculated}
    graph = DependencyGraph()
    for field_id in calculated:
        graph.add_node(field_id)
    for field in calculated.values():
        for dependency in field.dependencies or []:
            if dependency in calculated:
                graph.add_edge(field.id, dependency)
    return [calculated[field_id] for field_id in graph.topological_order()]


class FormService:
    def __init__(
        self,
        repository: FormRepository,
        audit_sink: Optional[AuditSink] = None,
        id_factory: Callable[[str], str] = new_id,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.audit_sink = audit_sink or LoggingAuditSink()
        self.id_factory = id_factory
        self.clock = clock

    async def create_form(self, form: FormIn, actor: str = SYSTEM_ACTOR) -> Form:
        check_fields(form.fields)

        new_form = Form(
            id=form.id or self.id_factory("form"),
            name=form.name,
            description=form.description,
            schema_version=1,
            active=True,
            created_at=self.clock(),
            protected=form.protected if form.protected is not None else False,
            fields=form.fields,
        )
        created = await self.repository.create(new_form)
        logger.info(f"Form {created.id} created with {len(created.fields)} fields")

        self.audit_sink.emit(audit.FORM_CREATED, created.id, actor, self.clock())
        return created

    async def get_form_by_id(self, form_id: str) -> Optional[Form]:
        return await self.repository.find_by_id(form_id)

    async def list_forms(self, params: FormListParams) -> List[Form]:
        return await self.repository.list(params)

    async def list_responses(self, form_id: str, params: ResponseListParams) -> List[Response]:
        return await self.repository.list_responses(form_id, params)

    async def get_response_by_id(self, form_id: str, response_id: str) -> Optional[Response]:
        return await self.repository.find_response_by_id(form_id, response_id)

    async def _get_active_form(self, form_id: str) -> Form:
        form = await self.repository.find_by_id(form_id)
        if form is None:
            raise NotFoundError("Form", form_id)
        if not form.active:
            raise InactiveFormError(form_id)
        return form

    async def update_schema(self, form_id: str, update: FormSchemaUpdate, actor: str = SYSTEM_ACTOR) -> Form:
        existing = await self._get_active_form(form_id)

        if update.fields is not None:
            check_fields(update.fields)

        new_version = existing.schema_version + 1
        if update.schema_version is not None and update.schema_version <= existing.schema_version:
            raise SchemaVersionConflictError(update.schema_version, existing.schema_version)

        # creation timestamp and active flag always come from the stored form;
        # protection changes only when the caller sets it explicitly
        changes: Dict[str, Any] = {
            "schema_version": new_version,
            "created_at": existing.created_at,
            "active": existing.active,
            "protected": existing.protected if update.protected is None else update.protected,
        }
        for name in ("name", "description", "fields"):
            value = getattr(update, name)
            if value is not None:
                changes[name] = value

        updated = await self.repository.update_schema(form_id, changes)
        logger.info(f"Form {form_id} schema updated {existing.schema_version} -> {new_version}")

        self.audit_sink.emit(
            audit.SCHEMA_UPDATED,
            form_id,
            actor,
            self.clock(),
            previousVersion=existing.schema_version,
            newVersion=new_version,
        )
        return updated

    async def submit_response(
        self,
        form_id: str,
        values: Mapping[str, Any],
        schema_version: Optional[int] = None,
        actor: str = SYSTEM_ACTOR,
    ) -> Response:
        form = await self._get_active_form(form_id)

        target_version = schema_version if schema_version is not None else form.schema_version
        if target_version != form.schema_version:
            raise SchemaVersionMismatchError(target_version, form.schema_version)

        validator = FieldValidator()
        resolved: Dict[str, Any] = {}
        in_scope_calculated = set()
        for field in form.fields:
            if not evaluate_conditional(field.conditional, values, field_id=field.id):
                logger.debug(f"Field {field.id} skipped, condition {field.conditional} not met")
                continue
            value = values.get(field.id)
            validator.validate(field, value)
            if field.is_calculated:
                in_scope_calculated.add(field.id)
            elif value is not None:
                resolved[field.id] = value

        evaluator = FormulaEvaluator()
        computed: Dict[str, Any] = {}
        for field in calculation_order(form.fields):
            if field.id not in in_scope_calculated:
                continue
            computed[field.id] = evaluator.calculate(field, resolved)
            resolved[field.id] = computed[field.id]
            logger.debug(f"Computed {field.id} = {computed[field.id]!r}")

        response = Response(
            id=self.id_factory("response"),
            form_id=form_id,
            schema_version=target_version,
            values=dict(values),
            computed=computed,
            created_at=self.clock(),
            active=True,
        )
        saved = await self.repository.save_response(form_id, response)
        logger.info(f"Response {saved.id} submitted for form {form_id}")

        self.audit_sink.emit(
            audit.RESPONSE_SUBMITTED, saved.id, actor, self.clock(), formId=form_id
        )
        return saved

    async def soft_delete_form(self, form_id: str, actor: str) -> None:
        form = await self._get_active_form(form_id)
        if form.protected:
            raise ProtectedFormError(form_id)

        await self.repository.soft_delete(form_id, actor)
        logger.info(f"Form {form_id} soft deleted by {actor}")
        self.audit_sink.emit(audit.FORM_SOFT_DELETED, form_id, actor, self.clock())

    async def soft_delete_response(self, form_id: str, response_id: str, actor: str) -> None:
        response = await self.repository.find_response_by_id(form_id, response_id)
        if response is None:
            raise NotFoundError("Response", response_id)
        if not response.active:
            raise InactiveResponseError(response_id)

        await self.repository.soft_delete_response(form_id, response_id, actor)
        logger.info(f"Response {response_id} of form {form_id} soft deleted by {actor}")
        self.audit_sink.emit(
            audit.RESPONSE_SOFT_DELETED, response_id, actor, self.clock(), formId=form_id
        )
