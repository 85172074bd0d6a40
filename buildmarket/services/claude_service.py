"""
Claude API service wrapper
"""
from anthropic import AsyncAnthropic
from buildmarket.config import get_settings
from typing import Optional, Dict, Any
import json

settings = get_settings()


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` block if the model added one"""
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


class ClaudeService:
    def __init__(self):
        api_key = settings.ANTHROPIC_API_KEY or None
        self.model = settings.CLAUDE_MODEL
        self.max_tokens = settings.CLAUDE_MAX_TOKENS
        self.timeout = settings.AI_TIMEOUT_SECONDS
        self._available = bool(api_key)
        if self._available:
            self.client = AsyncAnthropic(api_key=api_key, timeout=self.timeout, max_retries=1)
        else:
            self.client = None

    @property
    def is_available(self) -> bool:
        return self._available

    async def generate_response(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.2,
        max_tokens: Optional[int] = None
    ) -> str:
        """
        Generate a response from Claude
        """
        if not self._available or self.client is None:
            raise RuntimeError("AI service not configured: ANTHROPIC_API_KEY is not set")

        messages = [{"role": "user", "content": prompt}]

        response = await self.client.messages.create(
            model=self.model,
            max_tokens=max_tokens or self.max_tokens,
            temperature=temperature,
            system=system_prompt if system_prompt else "",
            messages=messages
        )

        if not response.content:
            raise ValueError("Claude returned an empty response")
        return response.content[0].text

    async def generate_structured_response(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        response_format: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Generate a structured JSON response from Claude
        """
        structured_prompt = f"""{prompt}

IMPORTANT: Respond with ONLY a valid JSON object matching this schema:
{json.dumps(response_format, indent=2)}

Do not include any markdown formatting, code blocks, or explanatory text.
Just return the raw JSON."""

        response_text = await self.generate_response(
            prompt=structured_prompt,
            system_prompt=system_prompt
        )
        response_text = strip_code_fences(response_text)

        try:
            parsed = json.loads(response_text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Failed to parse Claude response as JSON: {e}\n\nResponse: {response_text}")

        if not isinstance(parsed, dict):
            raise ValueError(f"Expected a JSON object from Claude, got {type(parsed).__name__}")
        return parsed


# Singleton instance
claude_service = ClaudeService()
