"""
Risk Analysis - AI Analysis Client.

============================================================
PURPOSE
============================================================
Contract for the qualitative AI collaborator and its binding to
an HTTP messages API.

The core never reasons about the AI's method; it consumes the
structured result (indicators, summary, recommendations). Any
failure to reach the service or to read its answer surfaces as
DependencyError, and the analyzer decides whether that is fatal.

============================================================
"""

import asyncio
import json
import logging
import math
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Sequence, Tuple, runtime_checkable

import aiohttp

from core.exceptions import DependencyError
from data_sources.models import DataPoint
from risk_analysis.types import QualitativeIndicator, RiskCategory


logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.anthropic.com/v1/messages"
DEFAULT_API_VERSION = "2023-06-01"
DEFAULT_MODEL = "claude-sonnet-4-20250514"


# ============================================================
# CONTRACT
# ============================================================


@dataclass(frozen=True)
class AIAnalysisResult:
    """Structured output of the AI collaborator for one category."""

    indicators: Tuple[QualitativeIndicator, ...] = ()
    summary: str = ""
    recommendations: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AIAnalysisResult":
        indicators = []
        for item in data.get("indicators") or ():
            if not isinstance(item, dict) or "name" not in item:
                continue
            severity = float(item.get("severity", 0.0))
            confidence = float(item.get("confidence", 0.5))
            # json.loads accepts NaN and Infinity tokens
            if not (math.isfinite(severity) and math.isfinite(confidence)):
                logger.warning(f"Skipping AI indicator {item['name']!r} with non-finite values")
                continue
            indicators.append(QualitativeIndicator(
                name=str(item["name"]),
                severity=severity,
                evidence=str(item.get("evidence", "")),
                confidence=confidence,
            ))
        return cls(
            indicators=tuple(indicators),
            summary=str(data.get("summary", "")),
            recommendations=tuple(str(r) for r in data.get("recommendations") or ()),
        )


@runtime_checkable
class AIAnalysisClient(Protocol):
    async def analyze(
        self,
        category: RiskCategory,
        data_points: Sequence[DataPoint],
    ) -> AIAnalysisResult:
        ...


# ============================================================
# RESPONSE PARSING
# ============================================================


def extract_json_object(text: str) -> Dict[str, Any]:
    """
    Pull the JSON object out of a model reply.

    Strips markdown code fences, then takes everything from the
    first '{' to the last '}'.

    Raises:
        ValueError: no JSON object in the text
    """
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.split("\n", 1)[1] if "\n" in cleaned else ""
        if cleaned.rstrip().endswith("```"):
            cleaned = cleaned.rstrip()[:-3]

    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end < start:
        raise ValueError("No JSON object found in response")

    parsed = json.loads(cleaned[start:end + 1])
    if not isinstance(parsed, dict):
        raise ValueError("Response JSON is not an object")
    return parsed


def build_prompt(category: RiskCategory, data_points: Sequence[DataPoint], max_items: int = 25) -> str:
    lines = [
        f"Assess the category '{category.label}' from the reports below.",
        "Reply with a single JSON object with keys:",
        '  "indicators": [{"name": str, "severity": 0-1, "evidence": str, "confidence": 0-1}],',
        '  "summary": str,',
        '  "recommendations": [str]',
        "",
        "Reports:",
    ]
    ranked = sorted(data_points, key=lambda dp: -dp.reliability)[:max_items]
    for i, point in enumerate(ranked, 1):
        title = f"{point.title}: " if point.title else ""
        lines.append(f"{i}. [{point.source}, reliability {point.reliability:.2f}] {title}{point.content[:500]}")
    return "\n".join(lines)


# ============================================================
# MESSAGES API CLIENT
# ============================================================


@dataclass
class ClaudeClientConfig:
    api_key: Optional[str] = None
    api_url: str = DEFAULT_API_URL
    api_version: str = DEFAULT_API_VERSION
    model: str = DEFAULT_MODEL
    max_tokens: int = 4000
    temperature: float = 0.3
    timeout: float = 60.0
    max_items: int = 25

    @classmethod
    def from_env(cls) -> "ClaudeClientConfig":
        """
        Environment variables:
        - ANTHROPIC_API_KEY
        - AI_MODEL
        - AI_TIMEOUT
        """
        config = cls(api_key=os.getenv("ANTHROPIC_API_KEY"))
        if os.getenv("AI_MODEL"):
            config.model = os.getenv("AI_MODEL")
        if os.getenv("AI_TIMEOUT"):
            config.timeout = float(os.getenv("AI_TIMEOUT"))
        return config


class ClaudeAnalysisClient:
    """AI collaborator bound to the Anthropic messages API."""

    def __init__(
        self,
        config: Optional[ClaudeClientConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._config = config or ClaudeClientConfig.from_env()
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._config.timeout),
            )
            self._owns_session = True
        return self._session

    async def analyze(
        self,
        category: RiskCategory,
        data_points: Sequence[DataPoint],
    ) -> AIAnalysisResult:
        if not self._config.api_key:
            raise DependencyError("AI analysis API key not configured", dependency="ai_analysis")

        body = {
            "model": self._config.model,
            "max_tokens": self._config.max_tokens,
            "temperature": self._config.temperature,
            "system": "You are a geopolitical risk analyst. Answer with JSON only.",
            "messages": [
                {"role": "user", "content": build_prompt(category, data_points, self._config.max_items)},
            ],
        }
        headers = {
            "x-api-key": self._config.api_key,
            "anthropic-version": self._config.api_version,
            "content-type": "application/json",
        }

        session = await self._get_session()
        try:
            async with session.post(self._config.api_url, json=body, headers=headers) as response:
                if response.status >= 400:
                    text = await response.text()
                    raise DependencyError(
                        f"AI analysis HTTP {response.status}",
                        dependency="ai_analysis",
                        context={"status_code": response.status, "body": text[:500]},
                    )
                payload = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise DependencyError(
                f"AI analysis unreachable: {e}",
                dependency="ai_analysis",
                cause=e,
            ) from e

        text = "".join(
            block.get("text", "")
            for block in payload.get("content", [])
            if isinstance(block, dict) and block.get("type") == "text"
        )
        try:
            result = AIAnalysisResult.from_dict(extract_json_object(text))
        except (ValueError, TypeError) as e:
            raise DependencyError(
                f"Unreadable AI analysis response: {e}",
                dependency="ai_analysis",
                cause=e,
            ) from e

        usage = payload.get("usage", {})
        logger.debug(
            f"[{category.value}] AI analysis returned {len(result.indicators)} indicators "
            f"(tokens in={usage.get('input_tokens')}, out={usage.get('output_tokens')})"
        )
        return result

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
