from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ChatRoomSummary:
    id: str
    buyer_id: int | None = None
    seller_id: int | None = None
    last_message: str = ""
    last_message_at: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "buyerId": self.buyer_id,
            "sellerId": self.seller_id,
            "lastMessage": self.last_message,
            "lastMessageAt": self.last_message_at,
        }


class ChatDirectory:
    name = "unknown"

    def rooms_for_ad(self, ad_id: int, *, limit: int = 10) -> list[ChatRoomSummary]:
        raise NotImplementedError


class NullChatDirectory(ChatDirectory):
    name = "null"

    def rooms_for_ad(self, ad_id: int, *, limit: int = 10) -> list[ChatRoomSummary]:
        return []
