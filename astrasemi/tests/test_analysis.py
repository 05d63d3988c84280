"""
Document analysis passthrough tests: input guards, defaults for missing
fields and upstream failures.
"""

import json

import pytest

from astrasemi import analysis
from astrasemi.errors import UpstreamError, ValidationFailed


# =============================================================================
# CSV summary
# =============================================================================

@pytest.mark.asyncio
async def test_csv_summary_fills_defaults(fake_llm):
    fake = fake_llm([json.dumps({"mainPoints": ["Yield is 92%"], "top3Attention": ["a", "b", "c", "d"]})])
    rows = [{"lot": f"L{i}", "yield": 90 + i % 5} for i in range(150)]

    result = await analysis.summarize_csv(rows, ["lot", "yield"], 150, ["2 empty cells"])

    assert result == {
        "mainPoints": ["Yield is 92%"],
        "importantItems": ["No unusual items detected"],
        "top3Attention": ["a", "b", "c"],
        "dataQualityNotes": ["2 empty cells"],
    }
    prompt = fake.calls[0]["prompt"]
    assert "first 100 rows" in prompt
    assert "L99" in prompt and "L100" not in prompt
    assert "2 empty cells" in prompt


@pytest.mark.asyncio
async def test_csv_too_large(fake_llm, monkeypatch):
    fake = fake_llm()
    monkeypatch.setattr(analysis.get_settings(), "max_csv_input_chars", 50)
    with pytest.raises(ValidationFailed) as exc:
        await analysis.summarize_csv([{"note": "x" * 100}], ["note"], 1, [])
    assert "too large" in exc.value.message
    assert fake.calls == []


@pytest.mark.asyncio
async def test_csv_upstream_failure(fake_llm):
    fake_llm(["not json", "still not json"])
    with pytest.raises(UpstreamError):
        await analysis.summarize_csv([{"a": 1}], ["a"], 1, [])


# =============================================================================
# Text interpreter
# =============================================================================

@pytest.mark.asyncio
async def test_interpret_summary(fake_llm):
    fake_llm([json.dumps({"summary": "Line 3 is down.", "keyPoints": ["Pump failed"], "followUpActions": "call"})])
    result = await analysis.interpret_text("Line 3 stopped after the pump failed.", "summary")
    assert result == {"summary": "Line 3 is down.", "keyPoints": ["Pump failed"], "followUpActions": []}


@pytest.mark.asyncio
async def test_interpret_diagnosis_request_gets_referral(fake_llm):
    fake_llm([json.dumps({"summary": "The heater is broken.", "keyPoints": []})])
    result = await analysis.interpret_text("Please diagnose what's wrong with the etcher", "summary")
    assert result["summary"] == analysis.DIAGNOSIS_REFERRAL


@pytest.mark.asyncio
async def test_interpret_email_and_update_modes(fake_llm):
    fake_llm([json.dumps({"convertedEmail": "Hi team,"}), json.dumps({})])
    assert await analysis.interpret_text("text", "email") == {"convertedEmail": "Hi team,"}
    assert await analysis.interpret_text("text", "update") == {"convertedUpdate": "Unable to convert document"}


@pytest.mark.asyncio
async def test_interpret_guards(fake_llm):
    fake = fake_llm()
    with pytest.raises(ValidationFailed):
        await analysis.interpret_text("", "summary")
    with pytest.raises(ValidationFailed):
        await analysis.interpret_text(12, "summary")
    with pytest.raises(ValidationFailed) as exc:
        await analysis.interpret_text("x" * 10001, "summary")
    assert exc.value.message == "Text is too long. Maximum 10000 characters."
    with pytest.raises(ValidationFailed) as exc:
        await analysis.interpret_text("hello", "poem")
    assert exc.value.message == "Invalid mode"
    assert fake.calls == []


# =============================================================================
# Image explainer
# =============================================================================

@pytest.mark.asyncio
async def test_image_uses_data_url_and_defaults(fake_llm):
    fake = fake_llm([json.dumps({"object": "Most likely a wafer carrier"})])
    result = await analysis.explain_image("aGVsbG8=", "image/png")

    assert result == {
        "object": "Most likely a wafer carrier",
        "purpose": "Unable to determine purpose",
        "role": "Unable to determine role in semiconductor process",
    }
    assert fake.calls[0]["image_url"] == "data:image/png;base64,aGVsbG8="


@pytest.mark.asyncio
async def test_image_guards(fake_llm, monkeypatch):
    fake_llm()
    with pytest.raises(ValidationFailed):
        await analysis.explain_image(None)
    monkeypatch.setattr(analysis.get_settings(), "max_image_bytes", 30)
    with pytest.raises(ValidationFailed):
        await analysis.explain_image("A" * 44)
    assert analysis.estimated_image_bytes("A" * 40) == 30


# =============================================================================
# Glossary
# =============================================================================

@pytest.mark.asyncio
async def test_glossary_defaults(fake_llm):
    fake = fake_llm([json.dumps({"definition": "A thin slice of silicon.", "example": 5})])
    result = await analysis.explain_term("  wafer ", "intermediate")
    assert result == {
        "definition": "A thin slice of silicon.",
        "example": "Example not available",
        "whyItMatters": "Information not available",
        "commonConfusion": "No common confusions noted",
    }
    assert '"wafer"' in fake.calls[0]["prompt"]


@pytest.mark.asyncio
async def test_glossary_guards(fake_llm):
    fake_llm()
    with pytest.raises(ValidationFailed):
        await analysis.explain_term(None)
    with pytest.raises(ValidationFailed):
        await analysis.explain_term("x" * 201)


# =============================================================================
# HTTP
# =============================================================================

def test_analysis_endpoints(user_client, fake_llm):
    fake_llm([json.dumps({"definition": "d", "example": "e", "whyItMatters": "w", "commonConfusion": "c"})])
    ok = user_client.post("/api/module4", json={"term": "etch"})
    assert ok.status_code == 200
    assert ok.json()["definition"] == "d"

    missing = user_client.post("/api/module2", json={"mode": "summary"})
    assert missing.status_code == 400
    assert missing.json() == {"error": "Text input is required"}

    fake_llm([])
    failed = user_client.post("/api/module3", json={"image": "aGVsbG8="})
    assert failed.status_code == 500
    assert failed.json() == {"error": "Failed to identify image"}
