"""
Request bodies as head units send them.

Bodies arrive as JSON or as ``application/x-www-form-urlencoded``, carry extra
bookkeeping fields, and sometimes send ids as numbers. Routes declare a
``LooseBody`` model and take it through ``Depends(body_of(Model))``.
"""

from __future__ import annotations

import json
from typing import Any, Awaitable, Callable, TypeVar
from urllib.parse import parse_qsl

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ConfigDict, ValidationError

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

ModelT = TypeVar("ModelT", bound=BaseModel)


class LooseBody(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)


def _body_error(error_type: str, msg: str, value: Any) -> RequestValidationError:
    return RequestValidationError([{"type": error_type, "loc": ("body",), "msg": msg, "input": value}])


async def read_body_fields(request: Request) -> dict[str, Any]:
    """
    Decode the request body into a field dict.

    An empty body is an empty dict. Form bodies keep the last value of a
    repeated key.

    Raises:
        RequestValidationError: Malformed JSON or a JSON body that is not an object.
    """
    raw = await request.body()
    if not raw.strip():
        return {}

    content_type = request.headers.get("content-type", "").split(";", 1)[0].strip().lower()
    if content_type == FORM_CONTENT_TYPE:
        return dict(parse_qsl(raw.decode("utf-8", errors="replace"), keep_blank_values=True))

    try:
        parsed = json.loads(raw)
    except ValueError as exc:
        raise _body_error("json_invalid", f"JSON decode error: {exc}", None) from exc
    if not isinstance(parsed, dict):
        raise _body_error("model_attributes_type", "Body must be an object", parsed)
    return parsed


def body_of(model: type[ModelT]) -> Callable[[Request], Awaitable[ModelT]]:
    """FastAPI dependency validating the decoded body against ``model``."""

    async def dependency(request: Request) -> ModelT:
        fields = await read_body_fields(request)
        try:
            return model.model_validate(fields)
        except ValidationError as exc:
            raise RequestValidationError(exc.errors()) from exc

    return dependency
