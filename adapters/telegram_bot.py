#Description: Telegram Bot API adapter for outbound alerts (sendMessage only).

from threading import Lock

import httpx

from utils.config import settings
from utils.logging import logger

class TelegramAdapter:
    BASE_URL = "https://api.telegram.org"

    def __init__(self, token: str | None = None, chat_id: str | None = None, client: httpx.Client | None = None):
        self.token = token if token is not None else settings.TELEGRAM_BOT_TOKEN
        self.chat_id = chat_id if chat_id is not None else settings.TELEGRAM_CHAT_ID
        self.client = client or httpx.Client(timeout=settings.HTTP_TIMEOUT_SECONDS)
        self._warned = False
        self._send_lock = Lock()

    @property
    def enabled(self) -> bool:
        return bool(self.token and self.chat_id)

    def send_message(self, text: str, parse_mode: str | None = None) -> bool:
        if not self.enabled:
            if not self._warned:
                logger.warning("TELEGRAM_BOT_TOKEN or TELEGRAM_CHAT_ID is empty; outbound messages are dropped")
                self._warned = True
            return False

        payload = {"chat_id": self.chat_id, "text": text, "disable_web_page_preview": True}
        if parse_mode:
            payload["parse_mode"] = parse_mode
        # One message on the wire at a time
        with self._send_lock:
            try:
                r = self.client.post(f"{self.BASE_URL}/bot{self.token}/sendMessage", json=payload)
                r.raise_for_status()
            except httpx.HTTPStatusError as e:
                logger.error(f"Telegram send failed: HTTP {e.response.status_code}")
                return False
            except httpx.HTTPError as e:
                # str(e) may embed the bot token through the URL
                logger.error(f"Telegram send failed: {type(e).__name__}")
                return False
        return True
