"""
应用入口：
- 加载 .env（先 .env.example 作默认，再用 .env 覆盖）
- create_application()：装配 users 资源（数据库/钩子/base path 可注入，测试用 mongomock）
- lifespan 启动阶段：配置日志 → 打印 logger_config → 确保 users 集合索引
- 装载请求日志中间件、统一错误信封、认证路由、users 资源路由
- 提供 /health
"""
# 1) 先加载 .env，务必在导入 logger 之前
from users_api.config import load_env

load_env()

# 2) 正常导入
from contextlib import asynccontextmanager  # noqa: E402

from fastapi import FastAPI, Request  # noqa: E402
from fastapi.responses import JSONResponse  # noqa: E402
from starlette.exceptions import HTTPException as StarletteHTTPException  # noqa: E402

from users_api import config  # noqa: E402
from users_api.api.auth import build_auth_router  # noqa: E402
from users_api.hooks import default_hooks  # noqa: E402
from users_api.infra.db import get_database  # noqa: E402
from users_api.infra.logger import (  # noqa: E402
    LOG_BACKUP_COUNT, LOG_DIR, LOG_FILE, LOG_ROTATE_WHEN, LOG_TO_FILE,
    configure_logging, emit,
)
from users_api.middleware.logging import RequestLoggingMiddleware  # noqa: E402
from users_api.resource.resource import ResourceOptions, UsersResource  # noqa: E402
from users_api.resource.routes import mount_routes  # noqa: E402


def create_application(database=None, hooks=None, base_path=None) -> FastAPI:
    database = database if database is not None else get_database()
    resource = UsersResource(ResourceOptions(
        database=database,
        base_path=base_path or config.users_base_path(),
        hooks=hooks if hooks is not None else default_hooks(),
    ))

    # 3) lifespan：替代 on_event（startup/shutdown）
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        emit(
            "logger_config",
            to_file=LOG_TO_FILE, dir=LOG_DIR, file=LOG_FILE,
            when=LOG_ROTATE_WHEN, backup=LOG_BACKUP_COUNT,
        )
        resource.user_repository().ensure_indexes()
        emit("db_init_done", database=database.name, base_path=resource.base_path)
        yield
        emit("app_shutdown")

    app = FastAPI(title="Users API", version="0.1.0", lifespan=lifespan)
    app.state.users_resource = resource
    app.add_middleware(RequestLoggingMiddleware)

    # 认证失败、404 等也走统一信封
    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.get("/health")
    def health():
        return {"ok": True}

    app.include_router(build_auth_router(resource), prefix="/api")
    mount_routes(app, resource)
    return app


app = create_application()
