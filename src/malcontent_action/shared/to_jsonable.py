from dataclasses import fields, is_dataclass
from enum import Enum
from pathlib import Path


def to_jsonable(obj):
    """Convert report objects to a JSON-serializable structure.

    Handles:
    - Basic types (str, int, float, bool, None)
    - Enums (by value) and paths (as strings)
    - Collections (list, tuple, dict)
    - Dataclasses, skipping fields declared with ``repr=False``
    - Pydantic models
    - Bytes/Bytearray (decoded as UTF-8, replacing invalid bytes)

    Args:
        obj: Any Python object

    Returns:
        A JSON-serializable version of the object
    """
    if isinstance(obj, Enum):
        return to_jsonable(obj.value)
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    elif isinstance(obj, Path):
        return str(obj)
    elif isinstance(obj, (bytes, bytearray)):
        return bytes(obj).decode("utf-8", errors="replace")
    elif isinstance(obj, (list, tuple)):
        return [to_jsonable(item) for item in obj]
    elif isinstance(obj, dict):
        return {str(k): to_jsonable(v) for k, v in obj.items()}
    elif is_dataclass(obj) and not isinstance(obj, type):
        # repr=False marks bulky passthrough data such as the raw payload
        return {f.name: to_jsonable(getattr(obj, f.name)) for f in fields(obj) if f.repr}
    elif hasattr(obj, 'model_dump'):  # Pydantic v2
        return to_jsonable(obj.model_dump())
    else:
        return str(obj)
