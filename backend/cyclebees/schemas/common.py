from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys; populated from ORM objects."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def dump(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(by_alias=True, mode="json")


def dump_list(schema, objects) -> List[Dict[str, Any]]:
    return [dump(schema.model_validate(obj)) for obj in objects]


def envelope(data: Any = None, message: Optional[str] = None, errors: Optional[list] = None, success: bool = True) -> Dict[str, Any]:
    """Standard response body: ``{success, message?, data?, errors?}``."""
    body: Dict[str, Any] = {"success": success}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    if errors:
        body["errors"] = errors
    return body


def field_errors(pydantic_errors) -> List[Dict[str, str]]:
    """Flatten pydantic error dicts into ``[{field, message}]``."""
    errors = []
    for err in pydantic_errors:
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path", "form")]
        errors.append({"field": ".".join(loc) or "body", "message": err.get("msg", "Invalid value")})
    return errors


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


def paginate(query, page: int, limit: int):
    total = query.count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    pagination = Pagination(page=page, limit=limit, total=total, total_pages=(total + limit - 1) // limit)
    return items, dump(pagination)
