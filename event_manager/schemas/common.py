"""Response envelope shared by every endpoint."""
from typing import Any

from pydantic import BaseModel, ValidationError

from event_manager.errors import BadRequestError


class MessageResponse(BaseModel):
    success: bool = True
    message: str


def format_validation_errors(errors: list[dict[str, Any]]) -> str:
    """Join pydantic error entries into one client-facing message."""
    messages = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "form")]
        field = ".".join(loc)
        messages.append(f"{field}: {error['msg']}" if field else error["msg"])
    return ", ".join(messages)


def parse_payload(model_cls, data: dict[str, Any]):
    """Validate form data against a schema, raising BadRequestError on failure."""
    try:
        return model_cls.model_validate(data)
    except ValidationError as exc:
        raise BadRequestError(format_validation_errors(exc.errors())) from exc
