"""
Response helpers shared by the frame-producing routes.

Frames carry large numeric grids; clients that send
``Accept: application/x-msgpack`` receive MessagePack instead of JSON.
"""

from __future__ import annotations

from typing import Any

import msgpack
import numpy as np
from fastapi import Request
from fastapi.responses import Response
from pydantic import BaseModel

MSGPACK_MEDIA_TYPE = "application/x-msgpack"


def wants_msgpack(http_request: Request) -> bool:
    return MSGPACK_MEDIA_TYPE in http_request.headers.get("accept", "")


def negotiate_response(data: Any, http_request: Request) -> Any:
    """Return MessagePack or JSON response based on Accept header.

    MessagePack keeps raw ``uint8`` rasters as binary, which is far smaller
    than the nested JSON lists. Otherwise the data is returned unchanged and
    FastAPI serializes it with ORJSONResponse.
    """
    if wants_msgpack(http_request):
        if isinstance(data, BaseModel):
            data = data.model_dump(mode="python")
        packed = msgpack.packb(data, default=msgpack_default, use_bin_type=True)
        return Response(content=packed, media_type=MSGPACK_MEDIA_TYPE)
    return jsonable(data)


def msgpack_default(obj: Any) -> Any:
    """Fallback serializer for msgpack that handles numpy types.

    ``uint8`` rasters are packed as raw bytes, so the layer that carries one
    also carries its shape (``tint_shape`` for the K-Means tint).
    """
    if isinstance(obj, np.ndarray):
        if obj.dtype == np.uint8:
            return obj.tobytes()
        return obj.tolist()
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, np.bool_):
        return bool(obj)
    if isinstance(obj, tuple):
        return list(obj)
    raise TypeError(f"Unknown type for msgpack: {type(obj)}")


def jsonable(obj: Any) -> Any:
    """Recursively convert numpy containers and scalars to plain Python."""
    if isinstance(obj, dict):
        return {k: jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [jsonable(v) for v in obj]
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, np.bool_):
        return bool(obj)
    return obj
