import databases
import pytest
import sqlalchemy

from formsapi.audit import InMemoryAuditSink
from formsapi.database import metadata
from formsapi.engine.service import FormService
from formsapi.models.form import FormIn, FormListParams, FormSchemaUpdate, ResponseListParams
from formsapi.repositories.sql import SQLFormRepository


@pytest.fixture
def database_url(tmp_path):
    url = f"sqlite:///{tmp_path / 'forms.db'}"
    engine = sqlalchemy.create_engine(url, connect_args={"check_same_thread": False})
    metadata.create_all(engine)
    engine.dispose()
    return url


@pytest.fixture
def sql_service(database_url, id_factory, clock):
    database = databases.Database(database_url)
    return FormService(
        SQLFormRepository(database, clock=clock),
        audit_sink=InMemoryAuditSink(),
        id_factory=id_factory,
        clock=clock,
    )


@pytest.mark.asyncio
async def test_form_lifecycle_round_trip(sql_service, bmi_form, make_field):
    database = sql_service.repository.database
    await database.connect()
    try:
        form = await sql_service.create_form(bmi_form)
        assert form.schema_version == 1
        assert form.fields[2].formula == "peso / (altura/100)^2"
        assert form.fields[2].dependencies == ["peso", "altura"]

        response = await sql_service.submit_response(form.id, {"peso": 70, "altura": 170})
        assert response.computed == {"imc": 24.22}
        assert response.values == {"peso": 70, "altura": 170}

        updated = await sql_service.update_schema(
            form.id, FormSchemaUpdate(fields=[make_field("nome", "text", required=True)])
        )
        assert updated.schema_version == 2
        assert [f.id for f in updated.fields] == ["nome"]
        assert updated.fields[0].required is True

        responses = await sql_service.list_responses(form.id, ResponseListParams(schema_version=1))
        assert [r.id for r in responses] == [response.id]

        await sql_service.soft_delete_response(form.id, response.id, "ana")
        assert await sql_service.list_responses(form.id, ResponseListParams()) == []

        await sql_service.soft_delete_form(form.id, "ana")
        stored = await sql_service.get_form_by_id(form.id)
        assert stored.active is False
        assert stored.removed_by == "ana"
    finally:
        await database.disconnect()


@pytest.mark.asyncio
async def test_list_filters(sql_service, make_field):
    database = sql_service.repository.database
    await database.connect()
    try:
        for name in ("Anamnese", "Triagem", "Retorno"):
            await sql_service.create_form(FormIn(name=name, fields=[make_field("nome", "text")]))

        named = await sql_service.list_forms(FormListParams(name="tria"))
        ordered = await sql_service.list_forms(FormListParams(order_by="name", order="desc", page_size=2))

        assert [f.name for f in named] == ["Triagem"]
        assert [f.name for f in ordered] == ["Triagem", "Retorno"]
    finally:
        await database.disconnect()
