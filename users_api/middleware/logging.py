"""
模块职责：请求级日志中间件。
- 沿用上游的 x-request-id，没有则生成；
- 记录 request_start 与 request_end（含耗时、状态码）；
- 捕获异常并输出 request_error，随后抛出让 FastAPI 处理。
"""
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from users_api.infra.logger import emit, emit_error


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get("x-request-id") or str(uuid.uuid4())
        start = time.perf_counter()
        base = {"request_id": rid, "method": request.method, "path": str(request.url.path)}
        emit("request_start", **base)
        try:
            response: Response = await call_next(request)
        except Exception as e:
            emit_error(
                "request_error", error=repr(e),
                duration_ms=round((time.perf_counter() - start) * 1000, 2), **base,
            )
            raise
        emit(
            "request_end", status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2), **base,
        )
        response.headers["x-request-id"] = rid
        return response
