"""Catch-all route that serves the deployment through the cache coordinator."""

import httpx
from fastapi import APIRouter, HTTPException, Request, Response

from ferryboard.core.cache_coordinator import ProxyRequest

router = APIRouter(tags=["proxy"])

# Will be set by main.py
coordinator = None


@router.get("/{path:path}")
async def proxy(path: str, request: Request):
    if coordinator is None:
        raise HTTPException(status_code=503, detail="Coordinator not initialized")
    url = coordinator.url_for(path)
    if request.url.query:
        url = f"{url}?{request.url.query}"
    try:
        result = await coordinator.handle(ProxyRequest(url, accept=request.headers.get("accept")))
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        # only reachable for requests that were passed through unintercepted
        raise HTTPException(status_code=502, detail=str(e)) from e
    headers = dict(result.headers)
    headers["x-cache-source"] = result.source
    return Response(content=result.content, status_code=result.status_code, headers=headers)
