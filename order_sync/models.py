from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

# Column order used when a sheet has no header row yet.
ORDER_COLUMNS: List[str] = [
    "id",
    "name",
    "image",
    "email",
    "phoneNumber",
    "address",
    "postCode",
    "success",
    "socialId",
    "data",
    "orderStatus",
    "createdAt",
]
TYPE_COLUMN = "type"


class OrderRecord(BaseModel):
    """One order as stored in Strapi (`{id, attributes}` flattened)."""

    model_config = ConfigDict(extra="ignore", frozen=True, coerce_numbers_to_str=True)

    id: int
    name: Optional[str] = None
    image: Optional[str] = None
    email: Optional[str] = None
    phoneNumber: Optional[str] = None
    postCode: Optional[str] = None
    address: Optional[str] = None
    success: bool = False
    socialId: Optional[str] = None
    data: Optional[str] = None
    orderStatus: Optional[str] = None
    createdAt: Optional[str] = None

    @field_validator("success", mode="before")
    @classmethod
    def _unset_success_is_false(cls, value: Any) -> Any:
        return False if value is None else value

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> "OrderRecord":
        attrs = item.get("attributes") or {}
        return cls(id=item.get("id"), **{k: v for k, v in attrs.items() if k != "id"})


def parse_orders_payload(payload: Any) -> List[OrderRecord]:
    """Turn a `{data: [...]}` response into records.

    Raises ValueError when the payload does not have the expected shape.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
        raise ValueError("response has no 'data' list")
    records: List[OrderRecord] = []
    for pos, item in enumerate(payload["data"]):
        if not isinstance(item, dict):
            raise ValueError(f"data[{pos}] is not an object")
        try:
            records.append(OrderRecord.from_api(item))
        except ValidationError as exc:
            raise ValueError(f"data[{pos}] is not a valid order: {exc}") from exc
    return records


def parse_case_type_names(payload: Any) -> List[str]:
    items = payload.get("data") if isinstance(payload, dict) else None
    names: List[str] = []
    for item in items or []:
        if not isinstance(item, dict):
            continue
        attrs = item.get("attributes") or {}
        if not isinstance(attrs, dict):
            continue
        name = attrs.get("name")
        if name:
            names.append(str(name))
    return names


__all__ = [
    "ORDER_COLUMNS",
    "OrderRecord",
    "TYPE_COLUMN",
    "parse_case_type_names",
    "parse_orders_payload",
]
