"""LLM adapter via litellm, plus the system prompts each task kind runs under."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import litellm

litellm.suppress_debug_info = True


@dataclass
class LLMResponse:
    content: Optional[str] = None
    usage: Optional[Dict] = None

    @property
    def total_tokens(self) -> int:
        return (self.usage or {}).get("total_tokens", 0)


BASE_SYSTEM_PROMPT = """\
You are a specialist agent inside echoflow, a multi-agent coding assistant.
A coordinator has split the user's request into tasks; you are handed exactly one.

## Rules:
- Do only the task you were given; other agents handle the rest.
- Build on the results of earlier tasks when they are provided.
- Be concrete: show code, name files and functions, avoid filler.
- Answer in the language of the request.
"""

KIND_GUIDANCE = {
    "generate": "Write new, working code for the task. Include everything needed to run it.",
    "analyze": (
        "Study the requirements or code. Report structure, risks and constraints "
        "that later tasks must respect. Do not write the implementation."
    ),
    "refactor": "Improve the given code without changing its behavior. Explain each change briefly.",
    "debug": "Find the root cause of the problem, then give the smallest correct fix.",
    "explain": "Explain and document the code or design clearly for a developer new to it.",
    "synthesize": (
        "Merge the results of the earlier tasks into one coherent answer. "
        "Resolve contradictions and list any open issues."
    ),
}

KIND_PROMPTS = {
    kind: f"{BASE_SYSTEM_PROMPT}\n\n## Task type: {kind.upper()}\n{guidance}"
    for kind, guidance in KIND_GUIDANCE.items()
}


def build_system_prompt(kind: str, agent_instructions: Optional[str] = None) -> str:
    prompt = KIND_PROMPTS.get(kind, KIND_PROMPTS["generate"])
    if agent_instructions:
        prompt += f"\n\n## Agent instructions:\n{agent_instructions}"
    return prompt


class LLMAdapter:
    """Single-call chat interface over ``litellm.completion``.

    Credentials and the endpoint travel as call arguments, so presets for
    different providers can be used side by side from worker threads.
    """

    def __init__(self, model: str, temperature: float = 0.0,
                 max_tokens: int = 4096, api_base: Optional[str] = None,
                 api_key: Optional[str] = None, context_window: int = 128000,
                 timeout: Optional[float] = None):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.api_base = api_base
        self.api_key = api_key
        self.context_window = context_window
        self.timeout = timeout

    def _request_kwargs(self, messages: List[Dict[str, Any]]) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        optional = {"api_base": self.api_base, "api_key": self.api_key, "timeout": self.timeout}
        kwargs.update({k: v for k, v in optional.items() if v})
        return kwargs

    def chat(self, messages: List[Dict[str, Any]]) -> LLMResponse:
        """Send ``messages``; any provider failure surfaces as ``ConnectionError``."""
        try:
            response = litellm.completion(**self._request_kwargs(messages))
        except litellm.exceptions.AuthenticationError as e:
            raise ConnectionError(f"Authentication failed for {self.model}; check the API key.\n{e}")
        except litellm.exceptions.APIConnectionError as e:
            raise ConnectionError(
                f"Cannot reach {self.api_base or 'provider default endpoint'} for {self.model}\n{e}"
            )
        except Exception as e:
            raise ConnectionError(f"LLM error: {type(e).__name__}: {e}")

        usage = None
        if response.usage:
            usage = {
                name: getattr(response.usage, name, 0)
                for name in ("prompt_tokens", "completion_tokens", "total_tokens")
            }
        return LLMResponse(content=response.choices[0].message.content, usage=usage)
