"""业务异常定义

Web 层根据异常类型映射 HTTP 状态码：
ValidationError → 400，AuthError → 401，PermissionDeniedError → 403，
NotFoundError → 404。NotificationError 只在通知模块内部使用，不会向外抛出。
"""


class OrderError(Exception):
    """订单业务异常基类"""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(OrderError):
    """输入不合法或状态迁移不允许"""

    status_code = 400


class NotFoundError(OrderError):
    """找不到对应订单"""

    status_code = 404


class AuthError(OrderError):
    """缺少或无效的登录 token"""

    status_code = 401


class PermissionDeniedError(OrderError):
    """缺少或错误的超级管理员密钥"""

    status_code = 403


class NotificationError(Exception):
    """通知发送失败（仅在通知模块内部使用）"""
