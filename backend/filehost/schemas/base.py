"""Base schema classes with camelCase alias generation.

Records and API schemas inherit from these instead of BaseModel directly.
Python code stays snake_case. JSON output (API and index snapshot) is camelCase.
"""
from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts snake_case or camelCase input, outputs camelCase."""
    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "protected_namespaces": (),
    }
