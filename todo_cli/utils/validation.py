from collections.abc import Mapping
from typing import Any, TypeVar

import pydantic

from todo_cli.errors import ValidationError

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)


def parse_request(model_cls: type[ModelT], data: ModelT | Mapping[str, Any]) -> ModelT:
    """Accept a ready request model or validate a plain mapping into one."""
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError.from_pydantic(exc) from exc
