from typing import Optional
import logging
import httpx
from farewatch.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


class TelegramNotifier:
    """
    Sends price alerts to users through the Telegram Bot API.

    Texts go out as Markdown (for the "view" links). With an image the text
    becomes the photo caption, truncated to Telegram's caption limit.
    Delivery failures are logged and reported as False, never raised.
    """

    CAPTION_LIMIT = 1024

    def __init__(
        self,
        bot_token: Optional[str] = None,
        api_url: Optional[str] = None,
    ):
        self.bot_token = bot_token or settings.telegram_bot_token
        self.api_url = (api_url or settings.telegram_api_url).rstrip("/")
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=20.0)
        return self._http_client

    async def close(self):
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    def _method_url(self, method: str) -> str:
        return f"{self.api_url}/bot{self.bot_token}/{method}"

    async def _post(self, method: str, **kwargs) -> bool:
        if not self.bot_token:
            logger.warning("Telegram bot token not configured, alert not sent")
            return False

        try:
            client = await self._get_client()
            response = await client.post(self._method_url(method), **kwargs)

            if response.status_code == 200:
                return True
            logger.error(f"Telegram {method} returned {response.status_code}: {response.text}")
            return False

        except httpx.ConnectError as e:
            logger.warning(f"Could not connect to Telegram at {self.api_url}: {e}")
            return False
        except httpx.HTTPError as e:
            logger.error(f"Failed to send Telegram {method}: {e}")
            return False

    async def send_alert(self, user_id: int, text: str, image: Optional[bytes] = None) -> bool:
        """Send `text` to the user's chat, as a photo caption when `image` is given."""
        if image:
            sent = await self._post(
                "sendPhoto",
                data={
                    "chat_id": str(user_id),
                    "caption": text[:self.CAPTION_LIMIT],
                    "parse_mode": "Markdown",
                },
                files={"photo": ("price_history.png", image, "image/png")},
            )
        else:
            sent = await self._post(
                "sendMessage",
                json={
                    "chat_id": user_id,
                    "text": text,
                    "parse_mode": "Markdown",
                    "disable_web_page_preview": True,
                },
            )

        if sent:
            logger.info(f"Alert sent to user {user_id}")

        return sent
