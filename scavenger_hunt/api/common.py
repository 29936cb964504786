"""
Shared request model base and response envelope for the API routers
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Request body accepting camelCase keys (snake_case also works)"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def ok(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body
