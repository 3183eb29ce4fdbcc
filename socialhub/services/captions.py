from textwrap import dedent
from typing import List, Optional

from socialhub.config import settings
from socialhub.db.models import Organization
from socialhub.errors import SocialHubError, UpstreamError, ValidationError
from socialhub.services.hf_client import HFClient

BASE_STYLE = '''You are a social media copywriter for a business.
Turn the input into an engaging post caption that works on both Facebook and LinkedIn.
Keep it under 120-180 words, avoid hype, add 1-3 tasteful hashtags at the end.'''

DEFAULT_MODELS = ["google/flan-t5-large", "google/flan-t5-base", "MBZUAI/LaMini-T5-738M"]

ORGANIZATION_LABELS = (
    ("name", "Name"),
    ("category", "Industry"),
    ("description", "About"),
    ("website", "Website"),
    ("location", "Location"),
    ("size", "Company size"),
    ("employees", "Employees"),
    ("revenue", "Revenue"),
    ("market_area", "Market area"),
)


def _truncate(text: str, max_chars: int = 3500) -> str:
    return text[:max_chars]


def candidate_models() -> List[str]:
    raw = (settings.caption_models or "").strip()
    if not raw:
        return list(DEFAULT_MODELS)
    return [m.strip() for m in raw.split(",") if m.strip()]


def organization_context(org: Optional[Organization]) -> str:
    if not org:
        return ""
    lines = [f"{label}: {getattr(org, field)}" for field, label in ORGANIZATION_LABELS if getattr(org, field)]
    return "\n".join(lines)


def build_prompt(text: str, tone: str, org: Optional[Organization] = None) -> str:
    system = BASE_STYLE + f" Tone: {tone}."
    context = organization_context(org)
    if context:
        system += "\nWrite on behalf of this organization:\n" + context
    return dedent('''
    Instruction: {system}
    Input:
    {text}
    Output:
    ''').strip().format(system=system, text=_truncate(text))


def generate_caption(
    content: str,
    tone: str = "professional",
    org: Optional[Organization] = None,
    hf: Optional[HFClient] = None,
) -> str:
    """Try each candidate model in order; the first non-empty answer wins."""
    if not content or not content.strip():
        raise ValidationError("Content is required")
    prompt = build_prompt(content.strip(), tone, org)
    params = {"max_new_tokens": 200, "temperature": 0.7, "top_p": 0.95}
    if hf is None:
        raise SocialHubError("AI caption generation is not configured", status_code=503)

    errors = []
    for model in candidate_models():
        try:
            caption = hf.text_generation(model, prompt, params=params).strip()
        except SocialHubError as e:
            errors.append(f"{model}: {e.message}")
            continue
        if caption:
            return caption
        errors.append(f"{model}: empty response")
    raise UpstreamError("All caption models failed. Tried -> " + " | ".join(errors), provider="Hugging Face")
