"""通知通道抽象层 - 统一的出站消息协议

定义 Notifier（通知通道）基类和发送结果数据结构。
每个 Notifier 代表一个外部消息通道（Telegram 群组等）。

核心概念：
- NotificationResult: 统一的发送结果
- Notifier: 通道抽象基类，负责投递、分段和异步派发

设计原则：
- 通知是尽力而为的：任何失败都只记录日志并返回 ok=False，绝不向上抛出
- 派发（dispatch）不阻塞调用方，调用方丢弃返回的 Future 即可
"""
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from billing.errors import NotificationError

# 单条消息字符上限（Telegram 上限为 4096，预留余量）
MAX_MESSAGE_LENGTH = 4000


@dataclass
class NotificationResult:
    """发送结果

    Attributes:
        ok: 是否投递成功
        error: 失败原因
        payload: 通道返回的原始数据
    """
    ok: bool
    error: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)


class Notifier(ABC):
    """通知通道抽象基类

    子类只需实现 ``_deliver``：投递成功返回通道响应，失败抛出 NotificationError。

    使用方式：
        ```python
        notifier = TelegramNotifier(bot_token="...", chat_id="...")
        notifier.dispatch("<b>新订单</b>")          # 不等待结果
        result = notifier.send("同步发送")            # 等待结果，不会抛异常
        notifier.send_chunks(lines, title="日报")     # 长文本分段发送
        ```
    """

    def __init__(self, name: str, max_workers: int = 2):
        """
        Args:
            name: 通道名称标识（如 'telegram'）
            max_workers: 后台派发线程数
        """
        self.name = name
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix=f"notify-{name}"
        )

    @abstractmethod
    def _deliver(self, text: str) -> Dict[str, Any]:
        """投递一条消息

        Raises:
            NotificationError: 通道未配置、网络失败或远端拒绝
        """

    def send(self, text: str) -> NotificationResult:
        """同步发送一条消息，失败只记录日志"""
        try:
            payload = self._deliver(text)
        except NotificationError as e:
            logger.warning(f"[{self.name}] 通知未送达: {e}")
            return NotificationResult(ok=False, error=str(e))
        except Exception as e:
            logger.error(f"[{self.name}] 通知发送出错: {e}")
            return NotificationResult(ok=False, error=str(e))
        return NotificationResult(ok=True, payload=payload or {})

    def send_chunks(self, lines: Iterable[str], title: str = "") -> List[NotificationResult]:
        """把多行文本按字符上限分段发送

        追加下一行会超出上限时先发送已累积的内容；title 只出现在第一段开头。

        Returns:
            每一段的发送结果
        """
        results: List[NotificationResult] = []
        chunk = f"<b>{title}</b>\n" if title else ""
        for line in lines:
            if len(chunk + line + "\n") > MAX_MESSAGE_LENGTH and chunk.strip():
                results.append(self.send(chunk))
                chunk = ""
            chunk += line + "\n"
        if chunk.strip():
            results.append(self.send(chunk))
        return results

    def dispatch(self, text: str) -> Future:
        """后台发送，不阻塞调用方"""
        return self._executor.submit(self.send, text)

    def close(self, wait: bool = True) -> None:
        """停止后台派发线程"""
        self._executor.shutdown(wait=wait)
