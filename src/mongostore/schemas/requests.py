"""Request schemas for the store RPC surface.

One pydantic model per ``cmd``; together they form a tagged union keyed by
``cmd``. The configured default database is passed in as validation context
so every validated request carries a concrete ``database_name``.
"""

from __future__ import annotations

from typing import (
    Annotated,
    Any,
    Dict,
    List,
    Literal,
    Optional,
    Type,
    TypeVar,
    Union,
    get_args,
)

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeInt,
    StrictStr,
    StringConstraints,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError

from mongostore.constants import DEFAULT_CHANGES_LIMIT, PRIMARY_KEY
from mongostore.exception.store_exceptions import InvalidRequestError

NonEmptyStr = Annotated[StrictStr, StringConstraints(min_length=1)]

RequestT = TypeVar("RequestT", bound="StoreRequest")


def _require_patch_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    if not any(key != PRIMARY_KEY for key in data):
        raise ValueError(f"must contain at least one field besides '{PRIMARY_KEY}'")
    return data


PatchData = Annotated[Dict[str, Any], AfterValidator(_require_patch_fields)]


class QueryOptions(BaseModel):
    """Cursor shaping options shared by ``find`` and ``changes``."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    projection: Optional[Union[Dict[str, Any], List[NonEmptyStr]]] = Field(
        default=None, alias="fields"
    )
    order_by: Optional[Union[Dict[str, Any], List[NonEmptyStr], NonEmptyStr]] = Field(
        default=None, alias="orderBy"
    )
    offset: Optional[NonNegativeInt] = None
    limit: Optional[NonNegativeInt] = None


class ChangesOptions(QueryOptions):
    """Options for ``changes``; limit defaults to a single document."""

    limit: NonNegativeInt = DEFAULT_CHANGES_LIMIT


class StoreRequest(BaseModel):
    """Fields common to every store command."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    topic: StrictStr
    cmd: StrictStr
    database_name: Optional[NonEmptyStr] = Field(default=None, alias="databaseName")

    @model_validator(mode="after")
    def _resolve_database_name(self, info: ValidationInfo) -> "StoreRequest":
        if self.database_name is None:
            default = (info.context or {}).get("default_database")
            if not default:
                raise ValueError(
                    "databaseName is required when no default database is configured"
                )
            self.database_name = default
        return self


class CollectionRequest(StoreRequest):
    """Commands scoped to a single collection."""

    collection: NonEmptyStr


class ByIdRequest(CollectionRequest):
    """Commands addressing a single document by primary key."""

    id: Any

    @field_validator("id")
    @classmethod
    def _id_not_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("id must not be null")
        return value


# Database and table lifecycle
class CreateDatabaseRequest(StoreRequest):
    cmd: Literal["createDatabase"]


class RemoveDatabaseRequest(StoreRequest):
    cmd: Literal["removeDatabase"]


class CreateTableRequest(CollectionRequest):
    cmd: Literal["createTable"]


class RemoveTableRequest(CollectionRequest):
    cmd: Literal["removeTable"]


class TruncateTableRequest(CollectionRequest):
    cmd: Literal["truncateTable"]


class ChangesRequest(CollectionRequest):
    cmd: Literal["changes"]
    query: Optional[Dict[str, Any]] = None
    options: ChangesOptions = Field(default_factory=ChangesOptions)


# Store interface
class CreateRequest(CollectionRequest):
    cmd: Literal["create"]
    data: Union[Dict[str, Any], Annotated[List[Dict[str, Any]], Field(min_length=1)]]


class UpdateRequest(CollectionRequest):
    cmd: Literal["update"]
    query: Dict[str, Any]
    data: PatchData


class UpdateByIdRequest(ByIdRequest):
    cmd: Literal["updateById"]
    data: PatchData


class RemoveRequest(CollectionRequest):
    cmd: Literal["remove"]
    query: Dict[str, Any]


class RemoveByIdRequest(ByIdRequest):
    cmd: Literal["removeById"]


class ReplaceRequest(CollectionRequest):
    cmd: Literal["replace"]
    query: Dict[str, Any]
    data: Dict[str, Any]


class ReplaceByIdRequest(ByIdRequest):
    cmd: Literal["replaceById"]
    data: Dict[str, Any]


class FindByIdRequest(ByIdRequest):
    cmd: Literal["findById"]


class CountRequest(CollectionRequest):
    cmd: Literal["count"]
    query: Dict[str, Any]


class ExistsRequest(CollectionRequest):
    cmd: Literal["exists"]
    query: Dict[str, Any]


class FindRequest(CollectionRequest):
    cmd: Literal["find"]
    query: Dict[str, Any]
    options: Optional[QueryOptions] = None


StoreCommand = Annotated[
    Union[
        CreateDatabaseRequest,
        RemoveDatabaseRequest,
        CreateTableRequest,
        RemoveTableRequest,
        TruncateTableRequest,
        ChangesRequest,
        CreateRequest,
        UpdateRequest,
        UpdateByIdRequest,
        RemoveRequest,
        RemoveByIdRequest,
        ReplaceRequest,
        ReplaceByIdRequest,
        FindByIdRequest,
        CountRequest,
        ExistsRequest,
        FindRequest,
    ],
    Field(discriminator="cmd"),
]

REQUEST_MODELS: Dict[str, Type[StoreRequest]] = {
    get_args(model.model_fields["cmd"].annotation)[0]: model
    for model in get_args(get_args(StoreCommand)[0])
}


def validate_request(
    model: Type[RequestT], payload: Dict[str, Any], default_database: str
) -> RequestT:
    """Validate a decoded message against the model registered for its pattern.

    Args:
        model: Request model for the matched pattern
        payload: Decoded message body
        default_database: Database used when the request omits databaseName

    Returns:
        Validated request

    Raises:
        InvalidRequestError: If the payload does not satisfy the model
    """
    try:
        return model.model_validate(
            payload, context={"default_database": default_database}
        )
    except PydanticValidationError as exc:
        errors = [
            {
                "field": ".".join(str(part) for part in error["loc"]) or None,
                "message": error["msg"],
                "type": error["type"],
            }
            for error in exc.errors()
        ]
        raise InvalidRequestError(
            f"Invalid '{payload.get('cmd')}' request", errors=errors
        ) from exc
