from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from formsapi.models.form import Form, FormListParams, Response, ResponseListParams


class FormRepository(ABC):
    """Persistence of forms and their responses.

    Implementations may raise their own errors; the engine propagates them
    unchanged.
    """

    @abstractmethod
    async def create(self, form: Form) -> Form: ...

    @abstractmethod
    async def find_by_id(self, form_id: str) -> Optional[Form]: ...

    @abstractmethod
    async def list(self, params: FormListParams) -> List[Form]: ...

    @abstractmethod
    async def update_schema(self, form_id: str, changes: Dict[str, Any]) -> Form:
        """Apply `changes` (attribute name -> new value) to the stored form."""

    @abstractmethod
    async def soft_delete(self, form_id: str, actor: str) -> None: ...

    @abstractmethod
    async def save_response(self, form_id: str, response: Response) -> Response: ...

    @abstractmethod
    async def list_responses(self, form_id: str, params: ResponseListParams) -> List[Response]: ...

    @abstractmethod
    async def find_response_by_id(self, form_id: str, response_id: str) -> Optional[Response]: ...

    @abstractmethod
    async def soft_delete_response(self, form_id: str, response_id: str, actor: str) -> None: ...
