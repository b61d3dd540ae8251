"""Web 服务 - 订单管理 HTTP API

基于 FastAPI 提供订单管理接口，所有 API 挂在 /api 前缀下：

- POST   /api/login              → 登录，返回 Bearer token
- POST   /api/order              → 创建订单
- GET    /api/orders             → 全部订单（新建在前）
- PUT    /api/order/{id}         → 修改订单
- POST   /api/complete/{id}      → 结束订单
- DELETE /api/order/{id}         → 移入回收站（?permanent=1 需超级密钥，物理删除）
- DELETE /api/completed/{id}     → 仅删除已结束订单
- DELETE /api/orders/{id}        → 移入回收站
- POST   /api/restore/{id}       → 从回收站恢复
- GET    /api/completed          → 已结束订单
- GET    /api/daily-report       → 当日报表
- POST   /api/daily-report       → 推送当日报表
- GET    /api/trash              → 回收站（超级密钥）
- POST   /api/clear              → 清库（超级密钥）
- POST   /api/daily-reset        → 每日重置（超级密钥）
- POST   /api/archive-day        → 当日归档（超级密钥）
- GET    /api/archive            → 归档列表（超级密钥）
- GET    /api/ping               → 存活检查

{id} 可以是主键、数字 orderId 或 externalId。

使用方式：
    ```python
    web = WebChannel(lifecycle, archive_manager, port=3000)
    await web.startup()
    ```
"""
import asyncio
import os
import secrets
import threading
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from loguru import logger
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from billing.archive import ArchiveManager
from billing.errors import AuthError, OrderError, PermissionDeniedError, ValidationError
from billing.lifecycle import OrderLifecycleManager
from database.models import OrderStatus, OrderType
from interface.web.auth import create_token, decode_token

SUPER_KEY_HEADERS = ("super-key", "x-super-key")


# ==================== 请求模型 ====================

class LoginIn(BaseModel):
    username: str = ""
    password: str = ""


class OrderCreateIn(BaseModel):
    ps: Optional[str] = None
    type: OrderType = OrderType.VIP
    amount: Optional[int] = 0
    startTime: Optional[datetime] = None


class OrderEditIn(BaseModel):
    ps: Optional[str] = None
    type: Optional[OrderType] = None
    amount: Optional[int] = None
    startTime: Optional[datetime] = None
    status: Optional[OrderStatus] = None


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": message})


class WebChannel:
    """订单管理 Web 服务

    Args:
        lifecycle: 订单生命周期管理器
        archive_manager: 日报 / 归档管理器
        host / port: 监听地址
        username / password: 登录账号
        secret_key: JWT 签名密钥
        super_key: 超级管理员密钥
        static_dir: 静态资源目录（存在时挂载到 /）
    """

    def __init__(
        self,
        lifecycle: OrderLifecycleManager,
        archive_manager: ArchiveManager,
        host: str = "0.0.0.0",
        port: int = 3000,
        username: str = "admin",
        password: str = "12345",
        secret_key: str = "change-me-to-a-random-secret-key",
        super_key: str = "supersecret",
        static_dir: Optional[str] = None,
        jwt_algorithm: str = "HS256",
        jwt_expire_hours: int = 12,
    ):
        self.lifecycle = lifecycle
        self.archive_manager = archive_manager
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.secret_key = secret_key
        self.super_key = super_key
        self.static_dir = static_dir
        self.jwt_algorithm = jwt_algorithm
        self.jwt_expire_hours = jwt_expire_hours
        self.app = None
        self.running = False
        self._server_thread: Optional[threading.Thread] = None
        self._server = None  # uvicorn.Server 实例
        self._server_loop = None  # 服务器事件循环

    # ==================== 认证 ====================

    def _current_user(self, request: Request) -> Dict[str, Any]:
        """校验 Bearer token，返回 token 载荷"""
        auth = request.headers.get("Authorization", "")
        parts = auth.split(" ")
        if len(parts) != 2 or parts[0] != "Bearer":
            raise AuthError("No token")
        payload = decode_token(parts[1], self.secret_key, self.jwt_algorithm)
        if payload is None:
            raise AuthError("Token invalid or expired")
        return payload

    def _is_elevated(self, request: Request) -> bool:
        """请求是否携带正确的超级管理员密钥"""
        key = None
        for header in SUPER_KEY_HEADERS:
            key = key or request.headers.get(header)
        key = key or request.query_params.get("superKey")
        if not key or not self.super_key:
            return False
        return secrets.compare_digest(key, self.super_key)

    def _require_super(self, request: Request) -> None:
        if not self._is_elevated(request):
            raise PermissionDeniedError("Super admin required")

    # ==================== 应用 ====================

    def create_app(self) -> FastAPI:
        """创建 FastAPI 应用"""
        app = FastAPI(
            title="PS 订单管理",
            description="游戏机租用计时计费",
            version="1.0.0",
        )
        lifecycle = self.lifecycle
        archive_manager = self.archive_manager
        tz = lifecycle.clock.tz
        api = APIRouter(prefix="/api")
        user = Depends(self._current_user)
        superuser = [Depends(self._current_user), Depends(self._require_super)]

        @app.middleware("http")
        async def log_requests(request: Request, call_next):
            response = await call_next(request)
            logger.info(f"{request.method} {request.url.path} --> {response.status_code}")
            return response

        # ==================== 异常处理 ====================

        @app.exception_handler(OrderError)
        async def order_error_handler(request: Request, exc: OrderError):
            return _error(exc.status_code, exc.message)

        @app.exception_handler(RequestValidationError)
        async def request_validation_handler(request: Request, exc: RequestValidationError):
            errors = exc.errors()
            message = "; ".join(
                f"{'.'.join(str(p) for p in e.get('loc', ())[1:])}: {e.get('msg')}" for e in errors
            ) or "Invalid request"
            return _error(400, message)

        @app.exception_handler(StarletteHTTPException)
        async def http_error_handler(request: Request, exc: StarletteHTTPException):
            if exc.status_code == 404:
                if request.url.path.startswith("/api/"):
                    return _error(404, "API route not found")
                return PlainTextResponse("Not found", status_code=404)
            return _error(exc.status_code, str(exc.detail))

        @app.exception_handler(Exception)
        async def unhandled_error_handler(request: Request, exc: Exception):
            logger.opt(exception=exc).error(f"Unhandled error: {request.method} {request.url.path}")
            return _error(500, "Server error")

        # ==================== 公开接口 ====================

        @api.get("/ping")
        async def ping():
            return {"ok": True, "msg": "pong"}

        @api.post("/login")
        async def login(data: LoginIn):
            if not data.username or not data.password:
                raise ValidationError("Missing credentials")
            if not (secrets.compare_digest(data.username, self.username)
                    and secrets.compare_digest(data.password, self.password)):
                raise AuthError("Invalid username/password")
            token = create_token(
                data.username, self.secret_key, role="admin",
                algorithm=self.jwt_algorithm, expire_hours=self.jwt_expire_hours,
            )
            logger.info(f"登录成功: {data.username}")
            return {"ok": True, "token": token}

        # ==================== 订单 ====================

        @api.post("/order", dependencies=[user])
        def create_order(data: OrderCreateIn):
            order = lifecycle.create(
                ps=data.ps, type=data.type, amount=data.amount, start_time=data.startTime
            )
            return {"ok": True, "order": order.to_dict(tz)}

        @api.get("/orders", dependencies=[user])
        def list_orders():
            return [o.to_dict(tz) for o in lifecycle.list_orders()]

        @api.put("/order/{identifier}", dependencies=[user])
        def edit_order(identifier: str, data: OrderEditIn):
            changes = data.model_dump(exclude_unset=True)
            order = lifecycle.edit(
                identifier,
                ps=changes.get("ps"),
                type=changes.get("type"),
                amount=changes.get("amount"),
                start_time=changes.get("startTime"),
                status=changes.get("status"),
            )
            return {"ok": True, "order": order.to_dict(tz)}

        @api.post("/complete/{identifier}", dependencies=[user])
        def complete_order(identifier: str):
            result = lifecycle.complete(identifier)
            return {"ok": True, **result.to_dict(tz)}

        @api.delete("/order/{identifier}", dependencies=[user])
        def delete_order(identifier: str, request: Request, permanent: str = "0"):
            order = lifecycle.delete(
                identifier,
                permanent=permanent == "1",
                elevated=self._is_elevated(request),
            )
            if order is None:
                return {"ok": True}
            return {"ok": True, "order": order.to_dict(tz)}

        @api.delete("/completed/{identifier}", dependencies=[user])
        def delete_completed(identifier: str):
            order = lifecycle.trash_completed(identifier)
            return {"ok": True, "order": order.to_dict(tz)}

        @api.delete("/orders/{identifier}", dependencies=[user])
        def trash_order(identifier: str):
            order = lifecycle.trash(identifier)
            return {"ok": True, "order": order.to_dict(tz)}

        @api.post("/restore/{identifier}", dependencies=[user])
        def restore_order(identifier: str):
            order = lifecycle.restore(identifier)
            return {"ok": True, "order": order.to_dict(tz)}

        @api.get("/completed", dependencies=[user])
        def list_completed():
            return [o.to_dict(tz) for o in lifecycle.list_completed()]

        # ==================== 日报 ====================

        @api.get("/daily-report", dependencies=[user])
        def daily_report():
            return {"ok": True, **archive_manager.daily_report().to_dict()}

        @api.post("/daily-report", dependencies=[user])
        def push_daily_report():
            report = archive_manager.send_daily_report()
            return {"ok": True, "count": report.count, "totalSum": report.total_sum}

        # ==================== 超级管理员 ====================

        @api.get("/trash", dependencies=superuser)
        def list_trash():
            return [o.to_dict(tz) for o in lifecycle.list_trash()]

        @api.post("/clear", dependencies=superuser)
        def clear():
            result = archive_manager.clear()
            return {
                "ok": True,
                "totalCount": result.total_count,
                "totalSum": result.total_sum,
                "archiveCount": result.archive_count,
            }

        @api.post("/daily-reset", dependencies=superuser)
        def daily_reset():
            return {"ok": True, "updated": archive_manager.daily_reset()}

        @api.post("/archive-day", dependencies=superuser)
        def archive_day():
            result = archive_manager.archive_day()
            if not result.ok:
                return {"ok": False, "error": result.error}
            return {"ok": True, "archived": result.archived, "totalSum": result.total_sum}

        @api.get("/archive", dependencies=superuser)
        def list_archive():
            return {"ok": True, "archive": [a.to_dict(tz) for a in archive_manager.list_archives()]}

        app.include_router(api)

        # 静态资源（前端页面）
        if self.static_dir and os.path.isdir(self.static_dir):
            app.mount("/", StaticFiles(directory=self.static_dir, html=True), name="static")

        return app

    # ==================== 启停 ====================

    async def startup(self):
        """启动 Web 服务器"""
        import uvicorn

        self.app = self.create_app()
        self.running = True

        def run_server():
            """在独立线程中运行 uvicorn 服务器"""
            loop = asyncio.new_event_loop()
            asyncio.set_event_loop(loop)
            self._server_loop = loop

            config = uvicorn.Config(
                self.app,
                host=self.host,
                port=self.port,
                log_level="warning",
                loop="asyncio",
            )
            self._server = uvicorn.Server(config)
            # 禁用 uvicorn 内置的信号处理器（由 app.py 统一管理）
            self._server.install_signal_handlers = lambda: None

            try:
                loop.run_until_complete(self._server.serve())
            except Exception as e:
                logger.error(f"服务器运行出错: {e}")
            finally:
                loop.run_until_complete(loop.shutdown_asyncgens())
                loop.close()

        self._server_thread = threading.Thread(target=run_server, daemon=True)
        self._server_thread.start()

        # 等待服务器启动
        max_wait = 5
        waited = 0
        while self._server is None and waited < max_wait:
            await asyncio.sleep(0.1)
            waited += 0.1

        logger.info(f"Web 服务已启动: http://{self.host}:{self.port}")

    async def shutdown(self):
        """停止 Web 服务器，确保端口被释放"""
        self.running = False

        if self._server is not None:
            logger.info("正在停止 Web 服务器...")
            self._server.should_exit = True

            # 等待服务器线程自然退出（最多 3 秒）
            if self._server_thread and self._server_thread.is_alive():
                self._server_thread.join(timeout=3.0)

            if self._server_thread and self._server_thread.is_alive():
                logger.warning("服务器未在 3 秒内优雅停止，强制退出...")
                self._server.force_exit = True
                self._server_thread.join(timeout=2.0)
                if self._server_thread.is_alive():
                    logger.warning("服务器线程未能停止，将随主进程退出")

            self._server = None
            self._server_loop = None
            self._server_thread = None

        logger.info("Web 服务已停止")
