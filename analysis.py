"""Gemini-backed analysis: plain-English summary, key points and a PII-masked copy."""

import json
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import google.generativeai as genai

logger = logging.getLogger(__name__)

# ---------------------- CONFIG ---------------------- #

DEFAULT_MODEL = "gemini-2.5-flash"
DEMO_DELAY_SECONDS = 2.0
FALLBACK_KEY_POINT = "Analysis generated successfully"

MISSING_KEY_MESSAGE = (
    "Missing Google Gemini API Key. Please add GOOGLE_GENERATIVE_AI_API_KEY "
    "to your environment variables (or a .env file) and restart the server."
)
PROVIDER_HINT_MESSAGE = (
    "Failed to analyze document. Please check that your GOOGLE_GENERATIVE_AI_API_KEY "
    "is valid and has the Generative Language API enabled."
)

SIMPLIFICATION_PROMPT = """You are a legal literacy assistant. Your job is to translate complex legal documents into plain English that anyone can understand.

Analyze this legal document and provide:
1. A clear, simplified explanation in plain English (2-3 paragraphs)
2. 4-6 key points that highlight the most important information

Document:
{content}

Respond in the following JSON format:
{{
  "simplifiedText": "Your plain English explanation here...",
  "keyPoints": ["Point 1", "Point 2", "Point 3", "Point 4"]
}}"""

MASKING_PROMPT = """Mask all personally identifiable information (PII) in this legal document. Replace names with [NAME], addresses with [ADDRESS], phone numbers with [PHONE], email addresses with [EMAIL], dates of birth with [DOB], social security numbers with [SSN], and account numbers with [ACCOUNT].

Document:
{content}

Return only the masked document text, no explanation."""

# Greedy on purpose: first "{" through last "}".
JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

# Order matters, names are masked before addresses get a chance to match.
DEMO_MASKS = [
    (re.compile(r"[A-Z][a-z]+ [A-Z][a-z]+", re.ASCII), "[NAME]"),
    (re.compile(r"\d{3}-\d{2}-\d{4}", re.ASCII), "[SSN]"),
    (re.compile(r"\d{3}[-.]?\d{3}[-.]?\d{4}", re.ASCII), "[PHONE]"),
    (re.compile(r"\b[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}\b", re.ASCII | re.IGNORECASE), "[EMAIL]"),
    (
        re.compile(
            r"\d{1,5}\s\w+\s(?:Street|St|Avenue|Ave|Road|Rd|Boulevard|Blvd)",
            re.ASCII | re.IGNORECASE,
        ),
        "[ADDRESS]",
    ),
]

DEMO_SUMMARY = (
    "This is a demonstration of the AI analysis feature. In real mode with a Google Gemini "
    "API key, this section would contain:\n\n"
    "• A comprehensive plain-English summary of your legal document\n"
    "• Clear explanations of complex legal terms and clauses\n"
    "• Important implications and what they mean for you\n\n"
    "The actual AI would analyze the specific content of your document and provide "
    "personalized insights about rights, obligations, deadlines, and key terms."
)

DEMO_KEY_POINTS = [
    "Demo Mode: This is a simulated analysis to showcase the interface",
    "Real Mode: Connect Google Gemini API for actual AI-powered legal document analysis",
    "Privacy: With API key, your documents are analyzed securely with PII masking",
    "Audio: Text-to-speech works in both demo and real modes for accessibility",
]

# ---------------------- ERRORS ---------------------- #


class AnalysisError(Exception):
    """Base error for document analysis. ``status_code`` is the HTTP status to answer with."""

    status_code = 500


class ConfigurationError(AnalysisError):
    """Raised when the Gemini API key is not configured."""

    status_code = 400


class ValidationError(AnalysisError):
    """Raised when the request carries no usable document content."""

    status_code = 400


class ProviderError(AnalysisError):
    """Raised when a call to the generative model fails."""

    status_code = 500


# ---------------------- RESULT ---------------------- #


@dataclass
class AnalysisResult:
    simplified_text: str
    key_points: List[str] = field(default_factory=list)
    masked_text: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "simplifiedText": self.simplified_text,
            "keyPoints": list(self.key_points),
            "maskedText": self.masked_text,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisResult":
        return cls(
            simplified_text=data.get("simplifiedText") or "",
            key_points=list(data.get("keyPoints") or []),
            masked_text=data.get("maskedText") or "",
        )


# ---------------------- RESPONSE PARSING ---------------------- #


def parse_simplification(raw_text: str) -> Tuple[str, List[str]]:
    """Pull ``simplifiedText`` and ``keyPoints`` out of the model's reply.

    The model is asked for JSON but often wraps it in prose or code fences, so the
    first brace-delimited substring is parsed. Anything unusable degrades to the raw
    reply as the summary with a single placeholder key point.
    """
    fallback = (raw_text, [FALLBACK_KEY_POINT])

    match = JSON_OBJECT_RE.search(raw_text)
    if not match:
        logger.warning("No JSON object in summarization reply, using raw text (%d chars)", len(raw_text))
        return fallback

    try:
        data = json.loads(match.group(0))
    except ValueError as e:
        logger.warning("Summarization reply is not valid JSON, using raw text: %s", e)
        return fallback

    if not isinstance(data, dict):
        logger.warning("Summarization reply JSON is a %s, not an object", type(data).__name__)
        return fallback

    simplified = data.get("simplifiedText")
    if not isinstance(simplified, str) or not simplified:
        simplified = raw_text

    key_points = data.get("keyPoints")
    if not isinstance(key_points, list) or not key_points:
        key_points = [FALLBACK_KEY_POINT]
    else:
        key_points = [str(p) for p in key_points]

    return simplified, key_points


# ---------------------- GEMINI CALLS ---------------------- #


def generate_text(model, prompt: str) -> str:
    resp = model.generate_content(prompt)
    return resp.text


def analyze_document(content: Any, api_key: Optional[str], model_name: str = DEFAULT_MODEL) -> AnalysisResult:
    """Summarize ``content`` and produce a PII-masked copy with two sequential Gemini calls.

    Raises:
        ConfigurationError: no API key.
        ValidationError: missing, empty or non-string content.
        ProviderError: any failure while talking to Gemini.
    """
    if not api_key:
        raise ConfigurationError(MISSING_KEY_MESSAGE)

    logger.debug("API key present (length %d)", len(api_key))

    if not content:
        raise ValidationError("No content provided")
    if not isinstance(content, str):
        raise ValidationError("content must be a string")

    try:
        genai.configure(api_key=api_key)
        model = genai.GenerativeModel(model_name)

        logger.info("Requesting summary from %s (%d chars)", model_name, len(content))
        simplification_text = generate_text(model, SIMPLIFICATION_PROMPT.format(content=content))
        simplified, key_points = parse_simplification(simplification_text)

        logger.info("Requesting PII-masked copy from %s", model_name)
        masked_text = generate_text(model, MASKING_PROMPT.format(content=content))
    except Exception as e:
        logger.exception("Gemini analysis failed")
        raise ProviderError(str(e) or PROVIDER_HINT_MESSAGE) from e

    return AnalysisResult(simplified_text=simplified, key_points=key_points, masked_text=masked_text)


# ---------------------- DEMO MODE ---------------------- #


def mask_pii_locally(content: str) -> str:
    masked = content
    for pattern, token in DEMO_MASKS:
        masked = pattern.sub(token, masked)
    return masked


def generate_demo_analysis(
    content: str,
    delay: float = DEMO_DELAY_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> AnalysisResult:
    """Fabricate an analysis without contacting Gemini, after a fixed simulated delay."""
    sleep(delay)
    return AnalysisResult(
        simplified_text=DEMO_SUMMARY,
        key_points=list(DEMO_KEY_POINTS),
        masked_text=mask_pii_locally(content),
    )
