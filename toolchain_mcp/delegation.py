"""
Delegation transport - one sampling round-trip to the client's own model.

The client may answer with a single content item or a sequence of items.
Both shapes are normalized here, at the transport boundary, into a tagged
union (SingleContent | ContentSequence) so the discovery logic never has
to duck-type raw SDK payloads.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, Tuple, Union

from mcp.types import (
    ClientCapabilities,
    SamplingCapability,
    SamplingMessage,
    TextContent,
)

from toolchain_mcp.logging_utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ContentItem:
    """A tagged {type, text} content item."""
    type: str
    text: Optional[str] = None


@dataclass(frozen=True)
class SingleContent:
    item: ContentItem


@dataclass(frozen=True)
class ContentSequence:
    items: Tuple[ContentItem, ...]


DelegatedResponse = Union[SingleContent, ContentSequence]


def to_content_item(raw: Any) -> ContentItem:
    """Build a ContentItem from an SDK content model or a plain dict."""
    if isinstance(raw, ContentItem):
        return raw
    if isinstance(raw, dict):
        item_type, text = raw.get("type"), raw.get("text")
    else:
        item_type, text = getattr(raw, "type", None), getattr(raw, "text", None)
    return ContentItem(
        type=item_type if isinstance(item_type, str) else "unknown",
        text=text if isinstance(text, str) else None,
    )


def normalize_content(raw: Any) -> DelegatedResponse:
    """Normalize a sampling result's `content` into the tagged union."""
    if raw is None:
        return ContentSequence(items=())
    if isinstance(raw, (list, tuple)):
        return ContentSequence(items=tuple(to_content_item(item) for item in raw))
    return SingleContent(item=to_content_item(raw))


def first_text(response: DelegatedResponse) -> Optional[str]:
    """Return the first text item at either depth, or None if there is none."""
    if isinstance(response, SingleContent):
        items: Tuple[ContentItem, ...] = (response.item,)
    elif isinstance(response, ContentSequence):
        items = response.items
    else:
        return None

    for item in items:
        if item.type == "text" and item.text is not None:
            return item.text
    return None


class DelegationTransport(Protocol):
    """What discovery needs from the connection to the client."""

    def supports_delegation(self) -> bool: ...

    async def request(
        self, prompt: str, max_tokens: int, temperature: Optional[float] = None
    ) -> DelegatedResponse: ...


class SessionDelegate:
    """
    DelegationTransport over the MCP session of the request being served.

    Args:
        session_provider: returns the active ServerSession; raises LookupError
            when called outside a request (treated as "no capability").
    """

    def __init__(self, session_provider: Callable[[], Any]):
        self._session_provider = session_provider

    def _session(self) -> Optional[Any]:
        try:
            return self._session_provider()
        except LookupError:
            return None

    def supports_delegation(self) -> bool:
        session = self._session()
        if session is None:
            return False
        return bool(
            session.check_client_capability(ClientCapabilities(sampling=SamplingCapability()))
        )

    async def request(
        self, prompt: str, max_tokens: int, temperature: Optional[float] = None
    ) -> DelegatedResponse:
        session = self._session()
        if session is None:
            raise RuntimeError("No active client session for sampling request")

        logger.debug(f"Sending sampling request (max_tokens={max_tokens}, temperature={temperature})")
        result = await session.create_message(
            messages=[
                SamplingMessage(role="user", content=TextContent(type="text", text=prompt)),
            ],
            max_tokens=max_tokens,
            temperature=temperature,
        )
        return normalize_content(getattr(result, "content", None))
