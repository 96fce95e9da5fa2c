"""
FastAPI dependencies for the file endpoints.

- get_storage_backend: the backend built at startup, injected explicitly
- bind_body: binds a request model from a JSON body or form fields
"""
from typing import Callable, Type, TypeVar

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError

from filegate.storage.base import StorageBackend
from filegate.storage.errors import BackendUnavailableError

ModelT = TypeVar("ModelT", bound=BaseModel)


def get_storage_backend(request: Request) -> StorageBackend:
    """
    Return the storage backend created during application startup.

    Raises:
        BackendUnavailableError: If configuration produced no backend; the
            request must not proceed without one
    """
    backend = getattr(request.app.state, "storage_backend", None)
    if backend is None:
        reason = getattr(request.app.state, "storage_error", None)
        raise BackendUnavailableError(reason or "Storage backend not configured")
    return backend


def bind_body(model: Type[ModelT]) -> Callable:
    """
    Build a dependency that validates the request body into `model`.

    JSON bodies are used when Content-Type is application/json; anything
    else is read as form data. Binding failures become 400 responses.
    """
    async def dependency(request: Request) -> ModelT:
        content_type = request.headers.get("content-type", "")
        if content_type.startswith("application/json"):
            try:
                payload = await request.json()
            except ValueError as e:
                raise RequestValidationError(
                    [{"type": "json_invalid", "loc": ("body",), "msg": f"Invalid JSON: {e}"}]
                )
            if not isinstance(payload, dict):
                raise RequestValidationError(
                    [{"type": "dict_type", "loc": ("body",), "msg": "Body must be an object"}]
                )
        else:
            form = await request.form()
            payload = {key: value for key, value in form.items() if isinstance(value, str)}

        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise RequestValidationError(e.errors())

    return dependency
