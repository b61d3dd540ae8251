"""对外接口模块

- Notifier / TelegramNotifier：出站通知通道（尽力而为，不阻塞业务）
- WebChannel：订单管理 HTTP API

架构设计：
    浏览器 ──→ WebChannel ──→ OrderLifecycleManager / ArchiveManager ──→ 数据库
                                        │
                                        └──→ Notifier ──→ Telegram 群组
"""
from interface.base import MAX_MESSAGE_LENGTH, NotificationResult, Notifier
from interface.telegram.channel import TelegramNotifier

# Web 通道
try:
    from interface.web.channel import WebChannel
    _has_web = True
except ImportError:
    _has_web = False
    WebChannel = None

__all__ = [
    "MAX_MESSAGE_LENGTH",
    "NotificationResult",
    "Notifier",
    "TelegramNotifier",
]

if _has_web:
    __all__.append("WebChannel")
