"""Telegram 通知通道

通过 Bot API 的 sendMessage 向固定群组/会话推送 HTML 格式的消息。
"""
from typing import Any, Dict

import requests
from loguru import logger

from billing.errors import NotificationError
from interface.base import Notifier


class TelegramNotifier(Notifier):
    """Telegram 通知通道

    bot_token 或 chat_id 未配置时，所有消息都以 ok=False 返回，不影响业务。
    """

    def __init__(
        self,
        bot_token: str = "",
        chat_id: str = "",
        api_base: str = "https://api.telegram.org",
        timeout: float = 10.0,
        session: requests.Session = None,
    ):
        super().__init__("telegram")
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    @property
    def is_configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    def _deliver(self, text: str) -> Dict[str, Any]:
        if not self.is_configured:
            raise NotificationError("Telegram not configured (BOT_TOKEN or CHAT_ID missing)")

        url = f"{self.api_base}/bot{self.bot_token}/sendMessage"
        try:
            response = self._session.post(
                url,
                json={"chat_id": self.chat_id, "text": text, "parse_mode": "HTML"},
                timeout=self.timeout,
            )
            data = response.json()
        except requests.RequestException as e:
            raise NotificationError(f"request failed: {e}") from e
        except ValueError as e:
            raise NotificationError(f"invalid response (HTTP {response.status_code})") from e

        if not data.get("ok"):
            raise NotificationError(f"Telegram API error: {data.get('description') or data}")

        logger.debug(f"Telegram 消息已发送: {text[:50]!r}")
        return data
