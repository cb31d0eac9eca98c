from __future__ import annotations

from typing import Dict

from fastapi import APIRouter, Request

router = APIRouter(tags=["demo"])


# PUBLIC_INTERFACE
@router.get("/{path:path}", summary="Fallback")
def fallback(path: str, request: Request) -> Dict[str, str]:
    """
    Catch-all used by the stateless demo server: any GET that no other
    route matched answers 200 with the requested path (query included).
    """
    url = request.url
    full_path = f"{url.path}?{url.query}" if url.query else url.path
    return {"message": "API online", "path": full_path}
