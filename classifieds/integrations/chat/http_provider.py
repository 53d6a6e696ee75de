from __future__ import annotations

import requests

from classifieds.integrations.chat.base import ChatDirectory, ChatRoomSummary
from classifieds.integrations.common import IntegrationError, IntegrationTimeoutError, json_body


def _maybe_int(value) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class HttpChatDirectory(ChatDirectory):
    name = "http"

    def __init__(self, *, base_url: str, timeout: float):
        self.base_url = base_url.rstrip("/")
        self.timeout = float(timeout)

    def rooms_for_ad(self, ad_id: int, *, limit: int = 10) -> list[ChatRoomSummary]:
        params = {"adId": int(ad_id), "limit": int(limit)}
        try:
            r = requests.get(f"{self.base_url}/rooms", params=params, timeout=self.timeout)
        except requests.Timeout as exc:
            raise IntegrationTimeoutError("chat_timeout") from exc
        except requests.RequestException as exc:
            raise IntegrationError(f"chat_request_failed {exc}") from exc
        if r.status_code >= 400:
            raise IntegrationError(f"chat_http_{r.status_code}")
        data = json_body(r, "chat", [])
        if isinstance(data, dict):
            data = data.get("items") or data.get("data") or []
        rooms = []
        for item in data if isinstance(data, list) else []:
            if not isinstance(item, dict) or not item.get("id"):
                continue
            rooms.append(
                ChatRoomSummary(
                    id=str(item.get("id")),
                    buyer_id=_maybe_int(item.get("buyerId")),
                    seller_id=_maybe_int(item.get("sellerId")),
                    last_message=str(item.get("lastMessage") or ""),
                    last_message_at=item.get("lastMessageAt"),
                )
            )
        return rooms[: int(limit)]
