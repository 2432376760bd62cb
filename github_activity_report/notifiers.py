"""Chat webhook notifiers for finished reports."""

import logging
from abc import ABC, abstractmethod

import httpx

from .config import Config
from .errors import NotifierError

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Sends a finished report to a chat channel."""

    name = "notifier"

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.transport = transport

    @abstractmethod
    def build_message(self, content: str) -> dict:
        """Build the webhook JSON body for ``content``."""
        pass

    def send(self, content: str) -> None:
        """Post ``content`` to the webhook.

        Raises:
            NotifierError: If the request fails or the webhook does not
                answer with HTTP 200
        """
        logger.debug(f"{self.name}: POST webhook ({len(content)} characters)")
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(self.webhook_url, json=self.build_message(content))
        except httpx.HTTPError as e:
            raise NotifierError(f"{self.name}: failed to send request: {e}") from e

        if response.status_code != 200:
            raise NotifierError(
                f"{self.name} API returned status {response.status_code}: {response.text}"
            )


class WeChatNotifier(Notifier):
    """WeChat Work group robot, markdown messages."""

    name = "WeChat"

    def build_message(self, content: str) -> dict:
        return {"msgtype": "markdown", "markdown": {"content": content}}


class FeishuNotifier(Notifier):
    """Feishu (Lark) custom bot, plain text messages."""

    name = "Feishu"

    def build_message(self, content: str) -> dict:
        return {"msg_type": "text", "content": {"text": content}}


def build_notifiers(config: Config) -> list[Notifier]:
    """Create a notifier for every enabled webhook in ``config``."""
    notifiers: list[Notifier] = []
    if config.wechat.enabled:
        notifiers.append(WeChatNotifier(config.wechat.webhook_url))
    if config.feishu.enabled:
        notifiers.append(FeishuNotifier(config.feishu.webhook_url))
    return notifiers
