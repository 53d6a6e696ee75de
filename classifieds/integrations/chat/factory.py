from __future__ import annotations

import os

from classifieds.integrations.chat.base import ChatDirectory, NullChatDirectory
from classifieds.integrations.chat.http_provider import HttpChatDirectory
from classifieds.integrations.common import timeout_seconds


def build_chat_directory() -> ChatDirectory:
    base_url = (os.getenv("CHAT_SERVICE_URL") or "").strip()
    if not base_url:
        return NullChatDirectory()
    return HttpChatDirectory(base_url=base_url, timeout=timeout_seconds("CHAT_TIMEOUT_MS", 1500))
