from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

FIELD_ID_PATTERN = r"^[a-z0-9_-]+$"


class FieldKind(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    SELECT = "select"
    DATE = "date"
    CALCULATED = "calculated"


class ValidationRule(BaseModel):
    kind: str = Field(min_length=1)
    value: Any = None
    message: Optional[str] = None


class SelectOption(BaseModel):
    label: str = Field(min_length=1)
    value: str = Field(min_length=1)


class FieldDefinition(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1, max_length=50, pattern=FIELD_ID_PATTERN)
    label: str = Field(min_length=1, max_length=100)
    # kept as a plain string so unknown kinds reach the engine and get reported there
    kind: str
    required: bool = False
    conditional: Optional[str] = None
    validation_rules: List[ValidationRule] = Field(
        default_factory=list, alias="validationRules"
    )
    formula: Optional[str] = None
    dependencies: Optional[List[str]] = None
    precision: Optional[int] = Field(default=None, ge=0, le=10)
    numeric_format: Optional[Literal["integer", "decimal"]] = Field(
        default=None, alias="numericFormat"
    )
    multiple: bool = False
    options: Optional[List[SelectOption]] = None
    min_date: Optional[str] = Field(default=None, alias="minDate")
    max_date: Optional[str] = Field(default=None, alias="maxDate")

    @property
    def is_calculated(self) -> bool:
        return self.kind == FieldKind.CALCULATED.value

    def rule(self, kind: str) -> Optional[ValidationRule]:
        for rule in self.validation_rules:
            if rule.kind == kind:
                return rule
        return None


class FormIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(default=None, min_length=1, max_length=50, pattern=FIELD_ID_PATTERN)
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    protected: Optional[bool] = None
    fields: List[FieldDefinition] = Field(min_length=1, max_length=100)


class FormSchemaUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    protected: Optional[bool] = None
    fields: Optional[List[FieldDefinition]] = Field(default=None, min_length=1, max_length=100)
    schema_version: Optional[int] = Field(default=None, alias="schemaVersion", ge=1)


class Form(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    description: Optional[str] = None
    schema_version: int = Field(default=1, alias="schemaVersion")
    active: bool = True
    created_at: datetime = Field(alias="createdAt")
    removed_at: Optional[datetime] = Field(default=None, alias="removedAt")
    removed_by: Optional[str] = Field(default=None, alias="removedBy")
    protected: bool = False
    fields: List[FieldDefinition] = []


class ResponseIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    values: Dict[str, Any] = {}
    schema_version: Optional[int] = Field(default=None, alias="schemaVersion", ge=1)


class Response(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    form_id: str = Field(alias="formId")
    schema_version: int = Field(alias="schemaVersion")
    values: Dict[str, Any] = {}
    computed: Dict[str, Any] = {}
    created_at: datetime = Field(alias="createdAt")
    active: bool = True
    removed_at: Optional[datetime] = Field(default=None, alias="removedAt")
    removed_by: Optional[str] = Field(default=None, alias="removedBy")


class FormListParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    schema_version: Optional[int] = Field(default=None, alias="schemaVersion")
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100, alias="pageSize")
    include_inactive: bool = Field(default=False, alias="includeInactive")
    order_by: Optional[Literal["name", "created_at", "schema_version"]] = Field(
        default=None, alias="orderBy"
    )
    order: Literal["asc", "desc"] = "asc"


class ResponseListParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100, alias="pageSize")
    schema_version: Optional[int] = Field(default=None, alias="schemaVersion")
    include_inactive: bool = Field(default=False, alias="includeInactive")
