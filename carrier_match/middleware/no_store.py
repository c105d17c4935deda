from fastapi import Request

NO_STORE_PREFIXES = ("/carrier",)

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
    "Vary": "Authorization, Cookie, Accept-Encoding",
}


async def no_store_headers(request: Request, call_next):
    """Location and enforcement state go stale in seconds; nothing under /carrier* may be cached."""
    response = await call_next(request)
    if request.url.path.startswith(NO_STORE_PREFIXES):
        for name, value in NO_STORE_HEADERS.items():
            response.headers[name] = value
    return response
