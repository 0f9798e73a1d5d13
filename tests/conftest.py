"""
Pytest fixtures shared by the engine, service and router tests.
"""

import os

os.environ["ENV_STATE"] = "test"

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from formsapi.audit import InMemoryAuditSink
from formsapi.engine.service import FormService
from formsapi.models.form import FieldDefinition, FormIn
from formsapi.repositories.memory import InMemoryFormRepository


class FakeClock:
    """Returns a strictly increasing UTC time, one second per call."""

    def __init__(self, start=datetime(2024, 1, 1, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self):
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def id_factory():
    counter = itertools.count(1)

    def _new_id(prefix):
        return f"{prefix}_{next(counter)}"

    return _new_id


@pytest.fixture
def repository(clock):
    return InMemoryFormRepository(clock=clock)


@pytest.fixture
def audit_sink():
    return InMemoryAuditSink()


@pytest.fixture
def service(repository, audit_sink, id_factory, clock):
    return FormService(repository, audit_sink=audit_sink, id_factory=id_factory, clock=clock)


@pytest.fixture
def make_field():
    """Factory for field definitions; keyword names follow the JSON aliases."""

    def _create(field_id, kind, label=None, **kwargs):
        return FieldDefinition.model_validate(
            {"id": field_id, "label": label or field_id, "kind": kind, **kwargs}
        )

    return _create


@pytest.fixture
def bmi_form(make_field):
    return FormIn(
        name="Avaliação física",
        fields=[
            make_field("peso", "number", required=True),
            make_field("altura", "number", required=True),
            make_field(
                "imc",
                "calculated",
                formula="peso / (altura/100)^2",
                dependencies=["peso", "altura"],
                precision=2,
            ),
        ],
    )
