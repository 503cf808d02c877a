import logging
from datetime import datetime
from typing import Optional, Sequence, Tuple

import httpx

from farewatch.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


class ChartRenderer:
    """Renders a price-history line chart to PNG through a QuickChart server."""

    WIDTH = 800
    HEIGHT = 400

    def __init__(self, quickchart_url: Optional[str] = None):
        self.quickchart_url = quickchart_url or settings.quickchart_url
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=15.0)
        return self._http_client

    async def close(self):
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    @staticmethod
    def build_config(points: Sequence[Tuple[datetime, float]], label: str = "Price (R$)") -> dict:
        """Chart.js config for `points`, sorted by time."""
        ordered = sorted(points, key=lambda p: p[0])
        return {
            "type": "line",
            "data": {
                "labels": [ts.strftime("%d/%m %H:%M") for ts, _ in ordered],
                "datasets": [{
                    "label": label,
                    "data": [price for _, price in ordered],
                    "borderColor": "rgb(75, 192, 192)",
                    "tension": 0.1,
                    "fill": False,
                }],
            },
            "options": {
                "scales": {
                    "y": {"beginAtZero": False, "grid": {"color": "rgba(200, 200, 200, 0.2)"}},
                    "x": {"grid": {"display": False}},
                },
                "plugins": {
                    "title": {"display": True, "text": "Price History", "color": "rgb(100, 100, 100)"},
                },
            },
        }

    async def render_price_history(self, points: Sequence[Tuple[datetime, float]]) -> Optional[bytes]:
        """PNG bytes, or None when there is nothing to draw or rendering failed."""
        if len(points) < 2:
            return None

        payload = {
            "version": "4",
            "width": self.WIDTH,
            "height": self.HEIGHT,
            "format": "png",
            "backgroundColor": "white",
            "chart": self.build_config(points),
        }

        try:
            client = await self._get_client()
            response = await client.post(self.quickchart_url, json=payload)
        except httpx.HTTPError as e:
            logger.warning(f"Chart rendering failed: {e}")
            return None

        if response.status_code != 200:
            logger.warning(f"Chart service returned {response.status_code}")
            return None
        return response.content
