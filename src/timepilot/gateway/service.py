"""AssistantGateway — turns an instruction + context into a sanitized response.

The gateway is stateless: every call reads only its arguments and the
configuration captured at construction, so one instance may serve
concurrent requests.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from timepilot.core.config import DEFAULT_MODEL
from timepilot.core.models import AiMode, AssistantResponse
from timepilot.core.patch import PATCH_KEYS, sanitize_response

log = logging.getLogger(__name__)

EMPTY_INSTRUCTION_MESSAGE = "指令不能为空。"

SYSTEM_PROMPT = f"""你是“时间追踪应用”的数据助手。
你会收到 instruction 和 context（含 records/todos/questions/dailyPlans 等）。
请按以下规则输出 JSON：
1) 如果是分析/问答需求，输出：{{"mode":"readonly","message":"..."}}
2) 如果是数据修改需求，输出：{{"mode":"preview_patch","message":"变更说明","patch":{{...}}}}
3) patch 只允许包含这些顶层键：{",".join(PATCH_KEYS)}
4) 禁止输出其它键；禁止 markdown 代码块；必须是合法 JSON 字符串。"""


class GatewayError(Exception):
    """Base error for gateway requests. Carries the HTTP status to report."""

    status_code = 500


class ValidationError(GatewayError):
    """The request itself is unusable."""

    status_code = 400


class ConfigurationError(GatewayError):
    """Credential or endpoint for the upstream model is missing."""


class UpstreamError(GatewayError):
    """The upstream model call failed or returned unusable content."""


@dataclass
class GatewayResult:
    """A response body plus the HTTP status it should be sent with."""

    status_code: int
    response: AssistantResponse


def normalize_history(history: object, limit: int = 12) -> list[dict[str, str]]:
    """Keep the last ``limit`` turns with non-blank string content.

    Roles other than "assistant" become "user".
    """
    if not isinstance(history, list):
        return []
    turns = [
        item for item in history
        if isinstance(item, dict)
        and isinstance(item.get("content"), str)
        and item["content"].strip()
    ]
    if limit <= 0:
        return []
    return [
        {
            "role": "assistant" if item.get("role") == "assistant" else "user",
            "content": item["content"],
        }
        for item in turns[-limit:]
    ]


class AssistantGateway:
    """Calls an OpenAI-compatible chat-completions endpoint once per request."""

    def __init__(self, config: dict | None = None) -> None:
        config = config or {}
        self._api_key = config.get("api_key")
        self._base_url = (config.get("base_url") or "").rstrip("/")
        self._model = config.get("model") or DEFAULT_MODEL
        self._temperature = config.get("temperature", 0.2)
        self._history_limit = config.get("history_limit", 12)
        self._timeout = config.get("timeout", 120.0)

    @property
    def model(self) -> str:
        return self._model

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key and self._base_url)

    def handle(self, body: object) -> GatewayResult:
        """Process one request body. Never raises.

        Every failure is reported as a readonly response with a message
        and the status code of the error class.
        """
        try:
            response = self.run(body)
        except GatewayError as e:
            log.warning("Assistant request failed (%s): %s", type(e).__name__, e)
            return GatewayResult(
                e.status_code,
                AssistantResponse(mode=AiMode.READONLY, message=_error_message(e)),
            )
        except Exception as e:
            log.error("Unexpected assistant failure: %s", e, exc_info=True)
            return GatewayResult(
                500,
                AssistantResponse(mode=AiMode.READONLY, message=f"函数错误：{e}"),
            )
        return GatewayResult(200, response)

    def run(self, body: object) -> AssistantResponse:
        """Process one request body.

        Raises:
            ValidationError: Blank instruction.
            ConfigurationError: Missing API key or base URL.
            UpstreamError: The model call failed or returned bad content.
        """
        body = body if isinstance(body, dict) else {}
        instruction = body.get("instruction")
        instruction = instruction.strip() if isinstance(instruction, str) else ""
        context = body.get("context") or {}
        history = normalize_history(body.get("history"), self._history_limit)

        if not instruction:
            raise ValidationError(EMPTY_INSTRUCTION_MESSAGE)

        if not self.is_configured:
            raise ConfigurationError(
                "AI 服务未配置：请设置 AI_API_KEY / AI_BASE_URL。"
            )

        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            *history,
            {
                "role": "user",
                "content": json.dumps(
                    {
                        "instruction": instruction,
                        "context": context,
                        "requirePatchFormat": bool(body.get("requirePatchFormat")),
                    },
                    ensure_ascii=False,
                ),
            },
        ]

        content = self._complete(messages)

        try:
            parsed = json.loads(content, parse_constant=_reject_constant)
        except ValueError as e:
            raise UpstreamError("AI 返回不是合法 JSON。请检查模型兼容性。") from e

        response = sanitize_response(parsed)
        log.info(
            "Assistant answered in %s mode (patch keys: %s)",
            response.mode.value,
            ",".join(response.patch) if response.patch else "-",
        )
        return response

    def _complete(self, messages: list[dict[str, str]]) -> str:
        """Send one chat-completion request and return the message content."""
        import httpx

        try:
            resp = httpx.post(
                f"{self._base_url}/chat/completions",
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "model": self._model,
                    "temperature": self._temperature,
                    "response_format": {"type": "json_object"},
                    "messages": messages,
                },
                timeout=self._timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise UpstreamError(
                f"上游 LLM 调用失败({e.response.status_code}): {e.response.text}"
            ) from e
        except (httpx.HTTPError, OSError) as e:
            raise UpstreamError(f"上游 LLM 无法访问: {e}") from e
        except ValueError as e:
            raise UpstreamError("上游 LLM 未返回可解析内容。") from e

        content = None
        if isinstance(data, dict):
            choices = data.get("choices") or []
            if isinstance(choices, list) and choices and isinstance(choices[0], dict):
                message = choices[0].get("message") or {}
                if isinstance(message, dict):
                    content = message.get("content")

        if not content or not isinstance(content, str):
            raise UpstreamError("上游 LLM 未返回可解析内容。")
        return content


def _reject_constant(name: str):
    raise ValueError(f"non-standard JSON constant {name}")


def _error_message(error: GatewayError) -> str:
    if isinstance(error, (ValidationError, ConfigurationError)):
        return str(error)
    return f"函数错误：{error}"
