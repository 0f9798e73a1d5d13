from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from formsapi.models.form import Form, FormListParams, Response, ResponseListParams
from formsapi.repositories.base import FormRepository


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _paginate(items: list, page: int, page_size: int) -> list:
    start = (page - 1) * page_size
    return items[start:start + page_size]


class InMemoryFormRepository(FormRepository):
    """Dict-backed repository with the same semantics as the SQL one."""

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self.clock = clock
        self.forms: Dict[str, Form] = {}
        self.responses: Dict[str, Response] = {}

    async def create(self, form: Form) -> Form:
        if form.id in self.forms:
            raise KeyError(f"Form {form.id} already exists")
        self.forms[form.id] = form.model_copy(deep=True)
        return form.model_copy(deep=True)

    async def find_by_id(self, form_id: str) -> Optional[Form]:
        form = self.forms.get(form_id)
        return form.model_copy(deep=True) if form else None

    async def list(self, params: FormListParams) -> List[Form]:
        forms = list(self.forms.values())
        if params.name:
            forms = [f for f in forms if params.name.lower() in f.name.lower()]
        if params.schema_version is not None:
            forms = [f for f in forms if f.schema_version == params.schema_version]
        if not params.include_inactive:
            forms = [f for f in forms if f.active]
        if params.order_by:
            forms.sort(key=lambda f: getattr(f, params.order_by), reverse=params.order == "desc")
        return [f.model_copy(deep=True) for f in _paginate(forms, params.page, params.page_size)]

    async def update_schema(self, form_id: str, changes: Dict[str, Any]) -> Form:
        stored = self.forms[form_id]
        updated = stored.model_copy(update=changes, deep=True)
        self.forms[form_id] = updated
        return updated.model_copy(deep=True)

    async def soft_delete(self, form_id: str, actor: str) -> None:
        stored = self.forms[form_id]
        self.forms[form_id] = stored.model_copy(
            update={"active": False, "removed_at": self.clock(), "removed_by": actor}
        )

    async def save_response(self, form_id: str, response: Response) -> Response:
        if form_id not in self.forms:
            raise KeyError(f"Form {form_id} does not exist")
        if response.id in self.responses:
            raise KeyError(f"Response {response.id} already exists")
        stored = response.model_copy(update={"form_id": form_id}, deep=True)
        self.responses[stored.id] = stored
        return stored.model_copy(deep=True)

    async def list_responses(self, form_id: str, params: ResponseListParams) -> List[Response]:
        responses = [r for r in self.responses.values() if r.form_id == form_id]
        if params.schema_version is not None:
            responses = [r for r in responses if r.schema_version == params.schema_version]
        if not params.include_inactive:
            responses = [r for r in responses if r.active]
        return [r.model_copy(deep=True) for r in _paginate(responses, params.page, params.page_size)]

    async def find_response_by_id(self, form_id: str, response_id: str) -> Optional[Response]:
        response = self.responses.get(response_id)
        if response is None or response.form_id != form_id:
            return None
        return response.model_copy(deep=True)

    async def soft_delete_response(self, form_id: str, response_id: str, actor: str) -> None:
        stored = self.responses[response_id]
        self.responses[response_id] = stored.model_copy(
            update={"active": False, "removed_at": self.clock(), "removed_by": actor}
        )
