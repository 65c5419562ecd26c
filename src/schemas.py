"""
Request models for the bundle endpoints.

These Pydantic models are the contract for request bodies. They are
checked at the API boundary so malformed input never reaches MongoDB.
"""

import math
from typing import Any, Dict, List, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt
from pydantic import ValidationError as PydanticValidationError
from pydantic import field_validator

from src.errors import ValidationError


class BundleUpdate(BaseModel):
    """
    Body of PUT /update-bundle/<id>.

    All three fields are replaced wholesale. The owning shop is not part
    of the contract and cannot be changed.
    """

    model_config = ConfigDict(populate_by_name=True)

    bundle_name: str = Field(..., alias="bundleName")
    products: List[str]
    discount: Union[StrictInt, StrictFloat]

    @field_validator("bundle_name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value

    @field_validator("products")
    @classmethod
    def _products_not_empty(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("must contain at least one product")
        return value

    @field_validator("discount")
    @classmethod
    def _discount_is_finite_number(cls, value):
        # bool is an int subclass; a JSON true/false is not a discount
        if isinstance(value, bool) or not value:
            raise ValueError("must be a non-zero number")
        # NaN and Infinity parse from JSON; huge ints overflow a double
        try:
            finite = math.isfinite(float(value))
        except OverflowError:
            finite = False
        if not finite:
            raise ValueError("must be a finite number")
        return value


class BundleCreate(BundleUpdate):
    """Body of POST /create-bundle."""

    shop: str

    @field_validator("shop")
    @classmethod
    def _shop_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value


def parse_body(model: type, data: Any, message: str) -> BaseModel:
    """
    Validate a decoded JSON body against a request model.

    Args:
        model: BundleCreate or BundleUpdate
        data: Decoded JSON (may be None when the body was missing)
        message: Public error message on failure

    Returns:
        Parsed model instance

    Raises:
        ValidationError: If the body is missing or does not match the model
    """
    if not isinstance(data, dict):
        raise ValidationError(message)

    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        fields = sorted({_field_name(err) for err in e.errors()})
        raise ValidationError(f"{message} Invalid fields: {', '.join(fields)}") from e


def _field_name(error: Dict[str, Any]) -> str:
    loc = error.get("loc") or ("body",)
    return str(loc[0])
