"""
Response helper utilities for handling UUID conversions and model validation
"""
from typing import Any, List
import uuid
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from utils.errors import AppError


def convert_uuids_to_strings(obj: Any, _path: frozenset = frozenset()) -> Any:
    """
    Recursively convert UUID objects to strings in any data structure
    """
    if isinstance(obj, uuid.UUID):
        return str(obj)
    elif isinstance(obj, dict):
        return {key: convert_uuids_to_strings(value, _path) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [convert_uuids_to_strings(item, _path) for item in obj]
    elif hasattr(obj, '__dict__'):
        # Handle SQLAlchemy models and other objects with __dict__
        if id(obj) in _path:
            # back reference to an object we are already inside of
            return None
        path = _path | {id(obj)}
        result = {}
        for key, value in obj.__dict__.items():
            if not key.startswith('_'):  # Skip SQLAlchemy internal attributes
                result[key] = convert_uuids_to_strings(value, path)
        return result
    else:
        return obj


def safe_model_validate(model_class: BaseModel, data: Any) -> BaseModel:
    """
    Safely validate a model by converting UUIDs to strings first.
    Only loaded attributes are read, so unloaded relationships never trigger IO.
    """
    clean_data = convert_uuids_to_strings(data)

    if isinstance(clean_data, dict):
        clean_data = {k: v for k, v in clean_data.items() if not k.startswith('_')}

    return model_class.model_validate(clean_data)


def safe_model_validate_list(model_class: BaseModel, data_list: List[Any]) -> List[BaseModel]:
    """
    Safely validate a list of models by converting UUIDs to strings first
    """
    return [safe_model_validate(model_class, item) for item in data_list]


class CamelModel(BaseModel):
    """
    Base schema for the public API: camelCase on the wire, snake_case in Python.
    Both spellings are accepted on input.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def to_uuid(value: Any, name: str = "id") -> uuid.UUID:
    """Parse an incoming identifier, rejecting malformed ones with a 400"""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        raise AppError(f"Invalid {name}", 400)
