"""
Document Analysis Passthroughs
==============================

Thin wrappers that guard input size, send a fixed system prompt to the LLM in
JSON mode, and fill any missing or malformed field with a safe default:

1. CSV summary
2. Text interpreter (summary / email / manager update)
3. Image explainer (vision model)
4. Semiconductor glossary

LLM failures surface as UpstreamError (HTTP 500 with a generic message).
"""

import json
import logging
from typing import Any, Dict, List, Optional

from .config import get_settings
from .errors import UpstreamError, ValidationFailed
from .llm_client import generate_json, string_field, string_list
from .schemas import InterpretMode

logger = logging.getLogger(__name__)

CSV_SAMPLE_ROWS = 100

DIAGNOSIS_TRIGGERS = ("diagnose", "what's wrong", "problem")
DIAGNOSIS_REFERRAL = (
    "I can help clarify and suggest who to check with. "
    "For technical diagnosis, please consult with your engineering team or supervisor."
)


async def _ask(prompt: str, system_prompt: str, timeout: float, failure: str, **kwargs) -> Dict[str, Any]:
    result = await generate_json(prompt=prompt, system_prompt=system_prompt, timeout=timeout, **kwargs)
    if not result.ok:
        logger.error(f"{failure}: {result.error}")
        raise UpstreamError(failure)
    return result.data


# =============================================================================
# 1. CSV summary
# =============================================================================

CSV_SYSTEM_PROMPT = """You are a helpful assistant that analyzes semiconductor operations data from CSV files.
Your role is to provide clear, beginner-friendly summaries.
CRITICAL RULES:
1. Only analyze data that is actually present in the CSV. Do NOT invent or hallucinate fields, values, or patterns that are not in the data.
2. If you're uncertain about something, say so explicitly.
3. Use simple, non-technical language suitable for new or non-technical semiconductor staff.
4. Return your response as valid JSON with these exact keys: mainPoints (array of strings), importantItems (array of strings), top3Attention (array of exactly 3 strings), dataQualityNotes (array of strings).
5. Be specific and reference actual data values when possible."""

CSV_DEFAULT_MAIN_POINTS = ["Unable to extract main points"]
CSV_DEFAULT_IMPORTANT = ["No unusual items detected"]
CSV_DEFAULT_TOP3 = ["Review data", "Check for issues", "Follow up as needed"]


async def summarize_csv(
    data: List[Any],
    headers: List[str],
    row_count: int,
    quality_notes: List[str],
) -> Dict[str, List[str]]:
    settings = get_settings()

    if len(json.dumps(data, separators=(",", ":"), default=str)) > settings.max_csv_input_chars:
        raise ValidationFailed("Input data too large. Please use a smaller CSV file.")

    sample = data[:CSV_SAMPLE_ROWS]
    notes_block = ""
    if quality_notes:
        notes_block = "Data quality issues detected:\n" + "\n".join(quality_notes)
    prompt = f"""Analyze this semiconductor operations CSV data:

Column headers: {", ".join(headers)}

Total rows: {row_count}

Sample data (first {len(sample)} rows):
{json.dumps(sample, indent=2, default=str)}

{notes_block}

Provide:
1. Main points (3-5 bullet points summarizing the overall data)
2. Important or unusual items (things that stand out, anomalies, notable patterns)
3. Top 3 things to pay attention to (numbered, most critical items)
4. Data quality notes (incorporate the provided notes and add any additional observations)

Return ONLY valid JSON, no markdown, no code blocks."""

    result = await _ask(
        prompt, CSV_SYSTEM_PROMPT, settings.llm_timeout, "Failed to process CSV data",
        temperature=0.3, max_tokens=1500,
    )

    return {
        "mainPoints": string_list(result.get("mainPoints")) or list(CSV_DEFAULT_MAIN_POINTS),
        "importantItems": string_list(result.get("importantItems")) or list(CSV_DEFAULT_IMPORTANT),
        "top3Attention": string_list(result.get("top3Attention"), limit=3) or list(CSV_DEFAULT_TOP3),
        "dataQualityNotes": string_list(result.get("dataQualityNotes")) or list(quality_notes),
    }


# =============================================================================
# 2. Text interpreter
# =============================================================================

INTERPRET_SYSTEM_PROMPT = """You are a helpful assistant that interprets semiconductor documents for non-technical staff.
Your role is to provide clear, beginner-friendly explanations and actionable insights.

CRITICAL RULES:
1. Use simple, non-technical language. Avoid jargon unless you explain it.
2. If the user asks for technical diagnosis or troubleshooting, respond: "I can help clarify and suggest who to check with."
3. Never provide medical, safety, or critical technical diagnoses.
4. Focus on understanding, summarizing, and suggesting next steps.
5. Return valid JSON with the required structure."""

INTERPRET_PROMPTS = {
    InterpretMode.SUMMARY: """Analyze this semiconductor document and provide:

Document text:
{text}

Provide:
1. summary: A clear 2-4 line summary in plain English
2. keyPoints: Array of 3-6 key points explained for beginners (each as a string)
3. followUpActions: Array of suggested follow-up actions if helpful (each as a string, can be empty array if none)

Return ONLY valid JSON with keys: summary, keyPoints, followUpActions.""",
    InterpretMode.EMAIL: """Convert this semiconductor document into a professional email:

Document text:
{text}

Create a professional email that summarizes the key points in a clear, business-appropriate format.
Return ONLY valid JSON with key: convertedEmail (string containing the email text).""",
    InterpretMode.UPDATE: """Convert this semiconductor document into a manager-friendly update:

Document text:
{text}

Create a concise, manager-friendly update that highlights the most important points in non-technical language.
Return ONLY valid JSON with key: convertedUpdate (string containing the update text).""",
}


def asks_for_diagnosis(text: str) -> bool:
    lowered = text.lower()
    return any(trigger in lowered for trigger in DIAGNOSIS_TRIGGERS)


async def interpret_text(text: Any, mode: Optional[str]) -> Dict[str, Any]:
    settings = get_settings()

    if not text or not isinstance(text, str):
        raise ValidationFailed("Text input is required")
    if len(text) > settings.max_text_input_chars:
        raise ValidationFailed(f"Text is too long. Maximum {settings.max_text_input_chars} characters.")
    try:
        interpret_mode = InterpretMode(mode)
    except ValueError:
        raise ValidationFailed("Invalid mode")

    text = text.strip()
    result = await _ask(
        INTERPRET_PROMPTS[interpret_mode].format(text=text),
        INTERPRET_SYSTEM_PROMPT,
        settings.llm_timeout,
        "Failed to interpret document",
        temperature=0.5,
    )

    if interpret_mode == InterpretMode.EMAIL:
        return {"convertedEmail": string_field(result.get("convertedEmail"), "Unable to convert document")}
    if interpret_mode == InterpretMode.UPDATE:
        return {"convertedUpdate": string_field(result.get("convertedUpdate"), "Unable to convert document")}

    summary = string_field(result.get("summary"), "Summary not available")
    if asks_for_diagnosis(text):
        summary = DIAGNOSIS_REFERRAL
    return {
        "summary": summary,
        "keyPoints": string_list(result.get("keyPoints")),
        "followUpActions": string_list(result.get("followUpActions")),
    }


# =============================================================================
# 3. Image explainer
# =============================================================================

IMAGE_SYSTEM_PROMPT = """You are a helpful assistant that identifies semiconductor components from images for non-technical staff.

CRITICAL RULES:
1. Use simple, beginner-friendly language. Avoid technical jargon unless you explain it.
2. Do NOT claim certainty. Use phrases like "most likely", "appears to be", "could be".
3. NEVER classify defects, failures, or problems. If asked about defects, provide only general educational information about what you see, not diagnostic assessments.
4. Focus on explaining what the object is, what it's used for, and its role in the semiconductor process.
5. Return valid JSON with keys: object (string), purpose (string), role (string).
6. Keep explanations friendly and accessible to people new to semiconductors."""

IMAGE_PROMPT = """Analyze this semiconductor image and provide:
1. object: What this object most likely is (use "most likely" or "appears to be" language)
2. purpose: What it's used for in simple terms
3. role: Its role in the overall semiconductor manufacturing process

Use beginner-friendly language. Do not diagnose defects or problems."""


def estimated_image_bytes(image_b64: str) -> float:
    """Decoded size of a base64 payload, without decoding it"""
    return len(image_b64) * 3 / 4


async def explain_image(image: Any, mime_type: Optional[str] = None) -> Dict[str, str]:
    settings = get_settings()

    if not image or not isinstance(image, str):
        raise ValidationFailed("Image data is required")
    if estimated_image_bytes(image) > settings.max_image_bytes:
        raise ValidationFailed(f"Image is too large. Maximum {settings.max_image_bytes // (1024 * 1024)}MB.")

    result = await _ask(
        IMAGE_PROMPT,
        IMAGE_SYSTEM_PROMPT,
        settings.vision_timeout,
        "Failed to identify image",
        temperature=0.3,
        max_tokens=500,
        image_url=f"data:{mime_type or 'image/jpeg'};base64,{image}",
    )

    return {
        "object": string_field(result.get("object"), "Unable to identify the object in the image"),
        "purpose": string_field(result.get("purpose"), "Unable to determine purpose"),
        "role": string_field(result.get("role"), "Unable to determine role in semiconductor process"),
    }


# =============================================================================
# 4. Glossary
# =============================================================================

GLOSSARY_SYSTEM_PROMPT = """You are a helpful glossary assistant for semiconductor terminology.
Your role is to explain terms in beginner-friendly language.

CRITICAL RULES:
1. Use simple, non-technical language suitable for new or non-technical semiconductor staff.
2. Provide concrete, day-to-day examples from semiconductor fabrication (fab) contexts.
3. Explain why the term matters in practical terms.
4. Address common confusions or misconceptions.
5. Adjust complexity based on level (beginner = very simple, intermediate = slightly more detail).
6. Return valid JSON with keys: definition, example, whyItMatters, commonConfusion."""


async def explain_term(term: Any, level: Optional[str] = "beginner") -> Dict[str, str]:
    settings = get_settings()

    if not term or not isinstance(term, str):
        raise ValidationFailed("Term is required")
    if len(term) > settings.max_term_chars:
        raise ValidationFailed(f"Term is too long. Maximum {settings.max_term_chars} characters.")

    term = term.strip()
    level = level or "beginner"
    if level == "beginner":
        level_instruction = "Use very simple language, avoid technical jargon, use analogies when helpful."
    else:
        level_instruction = "You can include slightly more technical detail but still keep it accessible."

    prompt = f"""Explain this semiconductor term: "{term}"

Level: {level}
{level_instruction}

Provide:
1. definition: A clear definition in plain English (2-3 sentences)
2. example: A concrete example in day-to-day fab context (2-3 sentences)
3. whyItMatters: Why this term matters in practical terms (2-3 sentences)
4. commonConfusion: Common confusion or misconceptions about this term (2-3 sentences)

Return ONLY valid JSON with these exact keys."""

    result = await _ask(
        prompt, GLOSSARY_SYSTEM_PROMPT, settings.glossary_timeout, "Failed to look up term",
        temperature=0.4,
    )

    return {
        "definition": string_field(result.get("definition"), "Definition not available"),
        "example": string_field(result.get("example"), "Example not available"),
        "whyItMatters": string_field(result.get("whyItMatters"), "Information not available"),
        "commonConfusion": string_field(result.get("commonConfusion"), "No common confusions noted"),
    }
