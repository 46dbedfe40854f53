from __future__ import annotations
import re
import httpx
import structlog

log = structlog.get_logger()

class TelegramClient:
    def __init__(self, bot_token: str, chat_id: str | int, timeout: float = 15.0):
        self.bot_token = bot_token
        self.chat_id = str(chat_id)
        self.base = f"https://api.telegram.org/bot{bot_token}"
        self.timeout = timeout

    def _sanitize_html(self, text_html: str) -> str:
        return re.sub(r"<br\s*/?>", "\n", text_html, flags=re.IGNORECASE)

    def send_message_html_sync(self, text_html: str, chat_id: str | int | None = None, disable_preview: bool = True):
        url = f"{self.base}/sendMessage"
        target_chat_id = str(chat_id) if chat_id is not None else self.chat_id
        data = {
            "chat_id": target_chat_id,
            "text": self._sanitize_html(text_html),
            "parse_mode": "HTML",
            "disable_web_page_preview": disable_preview,
        }
        with httpx.Client(timeout=self.timeout) as client:
            r = client.post(url, data=data)
            if r.status_code != 200:
                log.warning("telegram_send_failed", status=r.status_code, body=r.text[:500])
                return False
            return True

    def send_photo_sync(self, png: bytes, caption: str | None = None, chat_id: str | int | None = None):
        url = f"{self.base}/sendPhoto"
        target_chat_id = str(chat_id) if chat_id is not None else self.chat_id
        data = {"chat_id": target_chat_id}
        if caption:
            data["caption"] = caption
        with httpx.Client(timeout=self.timeout) as client:
            r = client.post(url, data=data, files={"photo": ("chart.png", png, "image/png")})
            if r.status_code != 200:
                log.warning("telegram_photo_failed", status=r.status_code, body=r.text[:500])
                return False
            return True
