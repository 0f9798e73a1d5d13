import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import databases

from formsapi.database import form_table, response_table
from formsapi.models.form import (
    FieldDefinition,
    Form,
    FormListParams,
    Response,
    ResponseListParams,
)
from formsapi.repositories.base import FormRepository

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _dump_fields(fields: List[FieldDefinition]) -> List[Dict[str, Any]]:
    return [field.model_dump(by_alias=True, exclude_none=True) for field in fields]


def _row_to_form(row) -> Form:
    return Form(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        schema_version=row["schema_version"],
        active=row["active"],
        created_at=row["created_at"],
        removed_at=row["removed_at"],
        removed_by=row["removed_by"],
        protected=row["protected"],
        fields=[FieldDefinition.model_validate(field) for field in row["fields"]],
    )


def _row_to_response(row) -> Response:
    return Response(
        id=row["id"],
        form_id=row["form_id"],
        schema_version=row["schema_version"],
        values=row["values"],
        computed=row["computed"],
        created_at=row["created_at"],
        active=row["active"],
        removed_at=row["removed_at"],
        removed_by=row["removed_by"],
    )


class SQLFormRepository(FormRepository):
    def __init__(self, database: databases.Database, clock: Callable[[], datetime] = utc_now):
        self.database = database
        self.clock = clock

    async def create(self, form: Form) -> Form:
        query = form_table.insert().values(
            id=form.id,
            name=form.name,
            description=form.description,
            schema_version=form.schema_version,
            active=form.active,
            created_at=form.created_at,
            protected=form.protected,
            fields=_dump_fields(form.fields),
        )
        await self.database.execute(query)
        logger.debug(f"Inserted form {form.id}")
        return await self.find_by_id(form.id)

    async def find_by_id(self, form_id: str) -> Optional[Form]:
        query = form_table.select().where(form_table.c.id == form_id)
        row = await self.database.fetch_one(query)
        return _row_to_form(row) if row else None

    async def list(self, params: FormListParams) -> List[Form]:
        query = form_table.select()
        if params.name:
            query = query.where(form_table.c.name.ilike(f"%{params.name}%"))
        if params.schema_version is not None:
            query = query.where(form_table.c.schema_version == params.schema_version)
        if not params.include_inactive:
            query = query.where(form_table.c.active == True)  # noqa: E712
        if params.order_by:
            column = form_table.c[params.order_by]
            query = query.order_by(column.desc() if params.order == "desc" else column.asc())
        query = query.limit(params.page_size).offset((params.page - 1) * params.page_size)
        rows = await self.database.fetch_all(query)
        return [_row_to_form(row) for row in rows]

    async def update_schema(self, form_id: str, changes: Dict[str, Any]) -> Form:
        values = dict(changes)
        if "fields" in values:
            values["fields"] = _dump_fields(values["fields"])
        query = form_table.update().where(form_table.c.id == form_id).values(**values)
        await self.database.execute(query)
        return await self.find_by_id(form_id)

    async def soft_delete(self, form_id: str, actor: str) -> None:
        query = form_table.update().where(form_table.c.id == form_id).values(
            active=False,
            removed_at=self.clock(),
            removed_by=actor,
        )
        await self.database.execute(query)

    async def save_response(self, form_id: str, response: Response) -> Response:
        query = response_table.insert().values(
            id=response.id,
            form_id=form_id,
            schema_version=response.schema_version,
            values=response.values,
            computed=response.computed,
            created_at=response.created_at,
            active=response.active,
        )
        await self.database.execute(query)
        return await self.find_response_by_id(form_id, response.id)

    async def list_responses(self, form_id: str, params: ResponseListParams) -> List[Response]:
        query = response_table.select().where(response_table.c.form_id == form_id)
        if params.schema_version is not None:
            query = query.where(response_table.c.schema_version == params.schema_version)
        if not params.include_inactive:
            query = query.where(response_table.c.active == True)  # noqa: E712
        query = (
            query.order_by(response_table.c.created_at)
            .limit(params.page_size)
            .offset((params.page - 1) * params.page_size)
        )
        rows = await self.database.fetch_all(query)
        return [_row_to_response(row) for row in rows]

    async def find_response_by_id(self, form_id: str, response_id: str) -> Optional[Response]:
        query = response_table.select().where(
            (response_table.c.id == response_id) & (response_table.c.form_id == form_id)
        )
        row = await self.database.fetch_one(query)
        return _row_to_response(row) if row else None

    async def soft_delete_response(self, form_id: str, response_id: str, actor: str) -> None:
        query = response_table.update().where(
            (response_table.c.id == response_id) & (response_table.c.form_id == form_id)
        ).values(
            active=False,
            removed_at=self.clock(),
            removed_by=actor,
        )
        await self.database.execute(query)
