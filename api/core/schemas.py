"""
Shared pydantic base models.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    snake_case attributes in Python, camelCase keys in JSON.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
