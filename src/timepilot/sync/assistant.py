"""AssistantClient — sends instructions to the gateway from the client side."""

from __future__ import annotations

import asyncio
import logging

from timepilot.core.models import AiMode, AssistantResponse, Document, HistoryTurn
from timepilot.core.patch import sanitize_response
from timepilot.gateway.service import AssistantGateway

log = logging.getLogger(__name__)

_HISTORY_LIMIT = 12


class AssistantClient:
    """Ask the assistant about a document and keep the conversation history.

    Talks to a gateway over HTTP when ``url`` is given, otherwise calls an
    in-process AssistantGateway on a worker thread. ask() never raises.
    """

    def __init__(
        self,
        url: str | None = None,
        gateway: AssistantGateway | None = None,
        timeout: float = 120.0,
        history_limit: int = _HISTORY_LIMIT,
        transport=None,
    ) -> None:
        if not url and gateway is None:
            raise ValueError("AssistantClient needs a gateway url or a gateway instance")
        self.url = url
        self.gateway = gateway
        self.timeout = timeout
        self.history_limit = history_limit
        self._transport = transport
        self.history: list[HistoryTurn] = []

    async def ask(
        self,
        instruction: str,
        document: Document,
        require_patch: bool = False,
    ) -> AssistantResponse:
        body = {
            "instruction": instruction,
            "context": document.to_dict(),
            "history": [{"role": t.role, "content": t.content} for t in self.history],
            "requirePatchFormat": require_patch,
        }

        if self.url:
            response = await self._post(body)
        else:
            result = await asyncio.to_thread(self.gateway.handle, body)
            response = result.response

        self._remember("user", instruction)
        self._remember("assistant", response.message)
        return response

    async def _post(self, body: dict) -> AssistantResponse:
        import httpx

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(self.url, json=body)
            data = resp.json()
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as e:
            log.warning("Assistant gateway unreachable at %s: %s", self.url, e)
            return AssistantResponse(mode=AiMode.READONLY, message=f"无法连接 AI 服务：{e}")
        except ValueError:
            log.warning("Assistant gateway returned non-JSON (status %s)", resp.status_code)
            return AssistantResponse(
                mode=AiMode.READONLY,
                message=f"AI 服务返回了无效响应（HTTP {resp.status_code}）。",
            )
        return sanitize_response(data)

    def _remember(self, role: str, content: str) -> None:
        if not content.strip():
            return
        self.history.append(HistoryTurn(role=role, content=content))
        if len(self.history) > self.history_limit:
            del self.history[: len(self.history) - self.history_limit]

    def clear_history(self) -> None:
        self.history.clear()
