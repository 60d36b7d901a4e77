"""Test doubles for generation, link validation and sleeping."""

from typing import Any


class RecordingSleep:
    """Async stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class ScriptedClient:
    """Generation client double answering from a list of responses.

    Each entry is either a string (returned) or an exception (raised).
    """

    def __init__(self, responses: list[Any] | None = None, default: str | None = None):
        self.responses = list(responses or [])
        self.default = default
        self.prompts: list[str] = []
        self.json_modes: list[bool] = []

    async def generate(self, prompt: str, json_mode: bool = False) -> str:
        self.prompts.append(prompt)
        self.json_modes.append(json_mode)
        if self.responses:
            response = self.responses.pop(0)
        elif self.default is not None:
            response = self.default
        else:
            raise AssertionError("ScriptedClient ran out of responses")
        if isinstance(response, BaseException):
            raise response
        return response


class StubLinkValidator:
    """Link validator double: URLs in ``valid`` pass, everything else is dead."""

    def __init__(self, valid: set[str] | None = None):
        self.valid = set(valid or ())
        self.checked: list[str] = []

    async def validate(self, url: str | None) -> str | None:
        if not url:
            return None
        self.checked.append(url)
        return url if url in self.valid else None


class FakeStatusError(Exception):
    """Stands in for an SDK error carrying an HTTP status."""

    def __init__(self, status_code: int):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code
