"""Request parsing shared by the instance plugins."""

from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from infrakit_instance.errors import InvalidSpecError, MalformedRequestError
from infrakit_instance.spi import Spec

RequestT = TypeVar("RequestT", bound=BaseModel)


def parse_request(model: type[RequestT], raw: Any) -> RequestT:
    """Deserialize raw JSON text or an already decoded JSON value into model.

    Raises:
        pydantic.ValidationError: On invalid JSON or schema mismatch.
    """
    if isinstance(raw, (str, bytes, bytearray)):
        return model.model_validate_json(raw)
    return model.model_validate(raw)


def validate_request(model: type[RequestT], raw: Any) -> RequestT:
    """parse_request for validate(): schema errors become MalformedRequestError."""
    try:
        return parse_request(model, raw)
    except ValidationError as e:
        raise MalformedRequestError(f"Malformed request: {e}") from e


def request_from_spec(model: type[RequestT], spec: Spec) -> RequestT:
    """Extract the backend request from spec.properties for provision().

    Raises:
        InvalidSpecError: If properties are absent or do not parse.
    """
    if spec.properties is None:
        raise InvalidSpecError("Properties must be set")
    try:
        return parse_request(model, spec.properties)
    except ValidationError as e:
        raise InvalidSpecError(f"Invalid input formatting: {e}") from e
