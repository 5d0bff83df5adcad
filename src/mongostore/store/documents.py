"""Translation between store-contract documents and MongoDB documents.

The store contract names the primary key ``id``; MongoDB keeps it in
``_id``. Everything crossing the adapter boundary goes through the helpers
here: inbound documents and filters are rewritten to ``_id``, outbound
documents back to ``id``, and cursor options become aggregation stages.
"""

import uuid
from typing import Any, Dict, List, Mapping, Optional, Union

from mongostore.constants import MONGO_PRIMARY_KEY, PRIMARY_KEY
from mongostore.exception.store_exceptions import InvalidRequestError
from mongostore.schemas.requests import QueryOptions

LOGICAL_OPERATORS = frozenset({"$and", "$or", "$nor"})
CHANGE_OPERATIONS = ("insert", "update", "replace", "delete")

_SORT_DIRECTIONS = {
    1: 1,
    -1: -1,
    "asc": 1,
    "ascending": 1,
    "desc": -1,
    "descending": -1,
}

Fields = Union[Dict[str, Any], List[str]]
OrderBy = Union[Dict[str, Any], List[str], str]


def new_key() -> str:
    """Generate a primary key for a document inserted without one."""
    return str(uuid.uuid4())


def _field_name(name: str) -> str:
    if name == PRIMARY_KEY:
        return MONGO_PRIMARY_KEY
    if name.startswith(PRIMARY_KEY + "."):
        return MONGO_PRIMARY_KEY + name[len(PRIMARY_KEY) :]
    return name


def to_storage(document: Mapping[str, Any]) -> Dict[str, Any]:
    """Convert an inbound document to its stored form, assigning a key if needed."""
    body = dict(document)
    if PRIMARY_KEY in body:
        key = body.pop(PRIMARY_KEY)
        body.pop(MONGO_PRIMARY_KEY, None)
    elif MONGO_PRIMARY_KEY in body:
        key = body.pop(MONGO_PRIMARY_KEY)
    else:
        key = new_key()
    return {MONGO_PRIMARY_KEY: key, **body}


def from_storage(document: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    """Convert a stored document to its contract form."""
    if document is None:
        return None
    body = dict(document)
    if MONGO_PRIMARY_KEY not in body:
        return body
    key = body.pop(MONGO_PRIMARY_KEY)
    return {PRIMARY_KEY: key, **body}


def translate_filter(query: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Rewrite primary key references in a filter document."""
    if not query:
        return {}
    translated = {}
    for key, value in query.items():
        if key in LOGICAL_OPERATORS and isinstance(value, list):
            translated[key] = [translate_filter(clause) for clause in value]
        elif key.startswith("$"):
            translated[key] = value
        else:
            translated[_field_name(key)] = value
    return translated


def _flatten(data: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    flat = {}
    for key, value in data.items():
        path = f"{prefix}{key}"
        if isinstance(value, Mapping) and value:
            flat.update(_flatten(value, path + "."))
        else:
            flat[path] = value
    return flat


def strip_key(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Drop primary key fields from a document body."""
    return {
        key: value
        for key, value in data.items()
        if key not in (PRIMARY_KEY, MONGO_PRIMARY_KEY)
    }


def _merge_expression(path: str, value: Any) -> Any:
    if not isinstance(value, Mapping):
        return {"$literal": value}

    merged = {
        key: _merge_expression(f"{path}.{key}", nested)
        for key, nested in value.items()
    }
    # merge only into a stored object; anything else is replaced
    return {
        "$cond": [
            {"$eq": [{"$type": "$" + path}, "object"]},
            {"$mergeObjects": ["$" + path, merged]},
            {"$literal": dict(value)},
        ]
    }


def patch_update(data: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """Build an update pipeline that deep-merges ``data`` into stored documents.

    Nested objects merge field by field into stored objects; arrays, scalars
    and objects landing on a stored non-object replace the stored value.
    """
    return [
        {
            "$set": {
                key: _merge_expression(key, value)
                for key, value in strip_key(data).items()
            }
        }
    ]


def replace_pipeline(data: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """Build an update pipeline replacing whole documents while keeping their key."""
    return [
        {
            "$replaceWith": {
                "$mergeObjects": [
                    {MONGO_PRIMARY_KEY: "$" + MONGO_PRIMARY_KEY},
                    {"$literal": strip_key(data)},
                ]
            }
        }
    ]


def projection_stage(fields: Fields) -> Dict[str, Any]:
    """Convert a ``fields`` option into a ``$project`` specification.

    Only the named fields are kept; the primary key is dropped unless it is
    named explicitly.
    """
    if isinstance(fields, Mapping):
        selected = [path for path, keep in _flatten(fields).items() if keep]
    else:
        selected = list(fields)

    if not selected:
        raise InvalidRequestError(
            "options.fields must name at least one field", field="options.fields"
        )

    projection: Dict[str, Any] = {_field_name(path): 1 for path in selected}
    projection.setdefault(MONGO_PRIMARY_KEY, 0)
    return projection


def sort_stage(order_by: OrderBy) -> Dict[str, int]:
    """Convert an ``orderBy`` option into a ``$sort`` specification.

    Accepts a field name (``"-name"`` sorts descending), a list of field
    names, or a mapping of field name to direction (1, -1, "asc", "desc").
    """
    sort: Dict[str, int] = {}
    if isinstance(order_by, str):
        order_by = [order_by]

    if isinstance(order_by, Mapping):
        for name, direction in order_by.items():
            if isinstance(direction, str):
                direction = direction.lower()
            if isinstance(direction, bool) or direction not in _SORT_DIRECTIONS:
                raise InvalidRequestError(
                    f"Unsupported sort direction for '{name}': {direction!r}",
                    field="options.orderBy",
                )
            sort[_field_name(name)] = _SORT_DIRECTIONS[direction]
    else:
        for name in order_by:
            if name.startswith("-"):
                sort[_field_name(name[1:])] = -1
            else:
                sort[_field_name(name.lstrip("+"))] = 1

    if not sort:
        raise InvalidRequestError(
            "options.orderBy must name at least one field", field="options.orderBy"
        )
    return sort


def find_pipeline(
    query: Optional[Mapping[str, Any]], options: Optional[QueryOptions]
) -> List[Dict[str, Any]]:
    """Build the aggregation pipeline for ``find``.

    Options compose in a fixed order, each stage applying to the output of
    the previous one: limit, offset, fields, orderBy. Zero values are
    treated as unset.
    """
    pipeline: List[Dict[str, Any]] = [{"$match": translate_filter(query)}]
    if options is None:
        return pipeline

    if options.limit:
        pipeline.append({"$limit": options.limit})
    if options.offset:
        pipeline.append({"$skip": options.offset})
    if options.projection:
        pipeline.append({"$project": projection_stage(options.projection)})
    if options.order_by:
        pipeline.append({"$sort": sort_stage(options.order_by)})
    return pipeline


def _prefixed_filter(query: Mapping[str, Any], prefix: str) -> Dict[str, Any]:
    prefixed = {}
    for key, value in translate_filter(query).items():
        if key in LOGICAL_OPERATORS and isinstance(value, list):
            prefixed[key] = [_prefixed_filter(clause, prefix) for clause in value]
        elif key.startswith("$"):
            prefixed[key] = value
        else:
            prefixed[f"{prefix}.{key}"] = value
    return prefixed


def change_stream_pipeline(
    query: Optional[Mapping[str, Any]],
) -> List[Dict[str, Any]]:
    """Build the change stream pipeline matching ``query``.

    A change matches when either its new or its old image satisfies the
    filter, so deletions and documents moving out of the filter are reported.
    """
    match: Dict[str, Any] = {"operationType": {"$in": list(CHANGE_OPERATIONS)}}
    if query:
        match["$or"] = [
            _prefixed_filter(query, "fullDocument"),
            _prefixed_filter(query, "fullDocumentBeforeChange"),
        ]
    return [{"$match": match}]


def project_document(
    document: Optional[Dict[str, Any]], fields: Optional[Fields]
) -> Optional[Dict[str, Any]]:
    """Keep only the requested fields of a contract document."""
    if document is None or not fields:
        return document

    if isinstance(fields, Mapping):
        projected = {}
        for name, keep in fields.items():
            if name not in document or not keep:
                continue
            value = document[name]
            if isinstance(keep, Mapping) and isinstance(value, dict):
                projected[name] = project_document(value, keep)
            else:
                projected[name] = value
        return projected

    return {name: document[name] for name in fields if name in document}


def change_event(
    change: Mapping[str, Any], fields: Optional[Fields] = None
) -> Dict[str, Any]:
    """Convert a MongoDB change document into a ``{new_val, old_val}`` event."""
    operation = change.get("operationType")
    new_val = None
    old_val = from_storage(change.get("fullDocumentBeforeChange"))

    if operation == "insert":
        new_val = from_storage(change.get("fullDocument"))
        old_val = None
    elif operation in ("update", "replace"):
        new_val = from_storage(change.get("fullDocument"))
    elif operation == "delete" and old_val is None:
        key = (change.get("documentKey") or {}).get(MONGO_PRIMARY_KEY)
        old_val = {PRIMARY_KEY: key}

    return {
        "new_val": project_document(new_val, fields),
        "old_val": project_document(old_val, fields),
    }
