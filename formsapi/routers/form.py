import logging
from typing import Annotated, List, Literal, Optional

from fastapi import APIRouter, Depends, Header, Query
from formsapi.config import config
from formsapi.database import database
from formsapi.engine.errors import NotFoundError
from formsapi.engine.service import SYSTEM_ACTOR, FormService
from formsapi.models.form import (
    Form,
    FormIn,
    FormListParams,
    FormSchemaUpdate,
    Response,
    ResponseIn,
    ResponseListParams,
)
from formsapi.repositories.base import FormRepository
from formsapi.repositories.memory import InMemoryFormRepository
from formsapi.repositories.sql import SQLFormRepository

logger = logging.getLogger(__name__)
router = APIRouter()


# shared so forms outlive a single request when running without a database
memory_repository = InMemoryFormRepository()


def build_repository(backend: str) -> FormRepository:
    if backend == "memory":
        return memory_repository
    return SQLFormRepository(database)


def get_form_service() -> FormService:
    return FormService(build_repository(config.REPOSITORY_BACKEND))


def get_actor(x_user: Annotated[Optional[str], Header()] = None) -> str:
    # caller identity is opaque here, authentication happens upstream
    return x_user or SYSTEM_ACTOR


Service = Annotated[FormService, Depends(get_form_service)]
Actor = Annotated[str, Depends(get_actor)]


@router.post("", response_model=Form, status_code=201)
async def create_form(form: FormIn, service: Service, actor: Actor):
    logger.debug(f"Creating form {form.name!r} for {actor}")
    return await service.create_form(form, actor=actor)


@router.get("", response_model=List[Form], status_code=200)
async def list_forms(
    service: Service,
    name: Optional[str] = None,
    schema_version: Annotated[Optional[int], Query(alias="schemaVersion")] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(alias="pageSize", ge=1, le=config.MAX_PAGE_SIZE)] = config.DEFAULT_PAGE_SIZE,
    include_inactive: Annotated[bool, Query(alias="includeInactive")] = False,
    order_by: Annotated[Optional[Literal["name", "created_at", "schema_version"]], Query(alias="orderBy")] = None,
    order: Literal["asc", "desc"] = "asc",
):
    params = FormListParams(
        name=name,
        schema_version=schema_version,
        page=page,
        page_size=page_size,
        include_inactive=include_inactive,
        order_by=order_by,
        order=order,
    )
    return await service.list_forms(params)


@router.get("/{form_id}", response_model=Form, status_code=200)
async def get_form(form_id: str, service: Service):
    form = await service.get_form_by_id(form_id)
    if not form:
        raise NotFoundError("Form", form_id)
    return form


@router.put("/{form_id}/schema", response_model=Form, status_code=200)
async def update_form_schema(form_id: str, update: FormSchemaUpdate, service: Service, actor: Actor):
    return await service.update_schema(form_id, update, actor=actor)


@router.delete("/{form_id}", status_code=200)
async def delete_form(form_id: str, service: Service, actor: Actor):
    await service.soft_delete_form(form_id, actor)
    return {"message": "Form deleted successfully", "form_id": form_id}


@router.post("/{form_id}/responses", response_model=Response, status_code=201)
async def submit_response(form_id: str, payload: ResponseIn, service: Service, actor: Actor):
    return await service.submit_response(
        form_id, payload.values, schema_version=payload.schema_version, actor=actor
    )


@router.get("/{form_id}/responses", response_model=List[Response], status_code=200)
async def list_responses(
    form_id: str,
    service: Service,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(alias="pageSize", ge=1, le=config.MAX_PAGE_SIZE)] = config.DEFAULT_PAGE_SIZE,
    schema_version: Annotated[Optional[int], Query(alias="schemaVersion")] = None,
    include_inactive: Annotated[bool, Query(alias="includeInactive")] = False,
):
    params = ResponseListParams(
        page=page,
        page_size=page_size,
        schema_version=schema_version,
        include_inactive=include_inactive,
    )
    return await service.list_responses(form_id, params)


@router.get("/{form_id}/responses/{response_id}", response_model=Response, status_code=200)
async def get_response(form_id: str, response_id: str, service: Service):
    response = await service.get_response_by_id(form_id, response_id)
    if not response:
        raise NotFoundError("Response", response_id)
    return response


@router.delete("/{form_id}/responses/{response_id}", status_code=200)
async def delete_response(form_id: str, response_id: str, service: Service, actor: Actor):
    await service.soft_delete_response(form_id, response_id, actor)
    return {"message": "Response deleted", "response_id": response_id}
