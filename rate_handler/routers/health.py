from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request):
    resolver = request.app.state.rate_resolver
    return {
        "status": "ok",
        "sources": [s.kind.value for s in resolver.sources],
        "safeguards_enabled": resolver.safeguards_enabled,
    }
