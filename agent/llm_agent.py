"""
LLM portfolio analysis.

Talks to OpenAI-compatible chat-completions endpoints (OpenRouter, Groq,
AIML, Fireworks). analyze() asks for a strict JSON object:

    {"insights": [...], "actions": [{"action", "pros", "cons"}],
     "assumptions": [...], "constraints": [...]}

analyze_with_fallback() tries providers in order and, on HTTP 413, retries
the same provider once with a minimal context. When nothing works a
rule-based fallback response is returned instead of raising.
"""
import json
import logging
import re
from typing import Any, Dict, List, Mapping, Optional

import httpx

from core.http import fetch_with_retry

logger = logging.getLogger(__name__)

LLM_TIMEOUT_MS = 30000

PROVIDERS = {
    "openrouter": {
        "endpoint": "https://openrouter.ai/api/v1/chat/completions",
        "model": "meta-llama/llama-3.1-70b-instruct",
        "key": "OPENROUTER_API_KEY",
        "json_mode": False,
        "extra_headers": {"X-Title": "Portfolio Agent"},
    },
    "groq": {
        "endpoint": "https://api.groq.com/openai/v1/chat/completions",
        "model": "llama-3.3-70b-versatile",
        "key": "GROQ_API_KEY",
        "json_mode": True,
    },
    "aiml": {
        "endpoint": "https://api.aimlapi.com/chat/completions",
        "model": "meta-llama/Llama-3.3-70B-Instruct-Turbo",
        "key": "AIML_API_KEY",
        "json_mode": False,
    },
    "fireworks": {
        "endpoint": "https://api.fireworks.ai/inference/v1/chat/completions",
        "model": "accounts/fireworks/models/llama-v3p1-70b-instruct",
        "key": "FIREWORKS_API_KEY",
        "json_mode": True,
    },
}

# analysis route preference
PROVIDER_ORDER = ("openrouter", "groq", "aiml", "fireworks")

SYSTEM_PROMPT = """You are a portfolio analysis AI. You MUST respond with ONLY valid JSON in this exact format:

{
  "insights": ["insight 1", "insight 2"],
  "actions": [
    {"action": "action description", "pros": ["pro 1"], "cons": ["con 1"]}
  ],
  "assumptions": ["assumption 1"],
  "constraints": ["constraint 1"]
}

DO NOT include any text before or after the JSON. DO NOT wrap in markdown code blocks."""


class LLMError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def extract_json(content: str) -> str:
    fenced = re.search(r"```(?:json)?\s*(\{.*\})\s*```", content, re.DOTALL)
    if fenced:
        return fenced.group(1)
    bare = re.search(r"\{.*\}", content, re.DOTALL)
    return bare.group(0) if bare else content


def is_valid_response(obj: Any) -> bool:
    return isinstance(obj, dict) and all(
        isinstance(obj.get(k), list) for k in ("insights", "actions", "assumptions", "constraints")
    )


def fallback_response(reason: Optional[str] = None) -> Dict[str, List]:
    return {
        "insights": [
            reason or "Portfolio analysis completed using quantitative metrics",
            "Review the risk metrics and alerts for detailed insights",
        ],
        "actions": [
            {
                "action": "Review portfolio concentration",
                "pros": ["Identify overweight positions", "Reduce single-asset risk"],
                "cons": ["May require rebalancing costs"],
            }
        ],
        "assumptions": ["LLM analysis unavailable, using rule-based insights"],
        "constraints": ["Limited to quantitative analysis only"],
    }


def compress_blackboard(store: Dict[str, Any]) -> Dict[str, Any]:
    """Drop bulky series so the prompt stays under provider payload limits."""
    compressed = {
        "symbols": store.get("symbols") or [],
        "weights": store.get("weights") or {},
        "policy": store.get("policy") or {},
    }
    risk = store.get("compute_risk")
    if isinstance(risk, dict):
        compressed["risk_metrics"] = {k: risk.get(k) for k in ("volPct", "sharpe", "maxDDPct", "var95Pct")}
    if store.get("compute_health") is not None:
        compressed["health"] = store["compute_health"]
    alerts = store.get("check_alerts")
    if isinstance(alerts, list):
        compressed["alerts"] = [a for a in alerts if a.get("level") == "high"][:5]
    return compressed


def minimal_blackboard(store: Dict[str, Any]) -> Dict[str, Any]:
    risk = store.get("compute_risk") or {}
    return {
        "symbols": store.get("symbols") or [],
        "weights": store.get("weights") or {},
        "health": store.get("compute_health"),
        "risk_summary": {"volPct": risk.get("volPct"), "sharpe": risk.get("sharpe")},
    }


class LLMAgent:
    def __init__(self, api_key: str, provider: str = "openrouter", model: Optional[str] = None,
                 client: Optional[httpx.AsyncClient] = None):
        if provider not in PROVIDERS:
            raise ValueError(f"Unsupported provider: {provider}")
        self.api_key = api_key
        self.provider = provider
        self.model = model or PROVIDERS[provider]["model"]
        self.client = client

    async def _complete(self, messages: list, temperature: float, max_tokens: int, json_mode: bool) -> str:
        cfg = PROVIDERS[self.provider]
        body = {"model": self.model, "messages": messages, "temperature": temperature, "max_tokens": max_tokens}
        if json_mode and cfg["json_mode"]:
            body["response_format"] = {"type": "json_object"}
        headers = {"Content-Type": "application/json", "Authorization": f"Bearer {self.api_key}"}
        headers.update(cfg.get("extra_headers") or {})

        resp = await fetch_with_retry(
            cfg["endpoint"], method="POST", json=body, headers=headers,
            timeout_ms=LLM_TIMEOUT_MS, max_retries=0, client=self.client,
        )
        if resp.status_code != 200:
            logger.error("%s API error %s: %s", self.provider, resp.status_code, resp.text[:300])
            raise LLMError(f"LLM API error: {resp.status_code}", status_code=resp.status_code)
        try:
            content = resp.json()["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError, ValueError):
            content = None
        if not content:
            raise LLMError("No response from LLM")
        return content

    async def analyze(self, context: Dict[str, Any]) -> Dict[str, Any]:
        """Raises LLMError / httpx.HTTPError on transport or format problems."""
        logger.info("LLM request to %s with model %s", self.provider, self.model)
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": json.dumps(context, default=str)},
        ]
        content = await self._complete(messages, temperature=0.3, max_tokens=2000, json_mode=True)
        try:
            parsed = json.loads(extract_json(content))
        except ValueError as e:
            raise LLMError(f"Invalid JSON from LLM: {e}")
        if not is_valid_response(parsed):
            raise LLMError("Invalid LLM response format")
        return parsed


async def analyze_with_fallback(store: Dict[str, Any], credentials: Mapping[str, str],
                                client: Optional[httpx.AsyncClient] = None) -> Dict[str, Any]:
    """Try each configured provider in PROVIDER_ORDER; never raises."""
    compressed = compress_blackboard(store)
    tried = False
    for name in PROVIDER_ORDER:
        key = credentials.get(PROVIDERS[name]["key"])
        if not key:
            continue
        tried = True
        agent = LLMAgent(key, provider=name, client=client)
        try:
            result = await agent.analyze(compressed)
            logger.info("%s analysis successful", name)
            return result
        except (LLMError, httpx.HTTPError) as e:
            logger.error("%s failed: %s", name, e)
            if isinstance(e, LLMError) and e.status_code == 413:
                try:
                    return await agent.analyze(minimal_blackboard(store))
                except (LLMError, httpx.HTTPError) as retry_error:
                    logger.error("%s failed even with minimal context: %s", name, retry_error)

    if tried:
        return fallback_response(
            "LLM analysis unavailable - all providers failed. Please check your API keys and billing status."
        )
    return fallback_response("LLM analysis skipped - no API key configured")
