# batchvoice/app/services/prompts.py
"""Built-in rewrite prompt presets."""
from __future__ import annotations

CUSTOM_PROMPT_TYPE = "custom"
DEFAULT_PROMPT_TYPE = "professional"

DEFAULT_PROMPTS: dict[str, str] = {
    "professional": "Rewrite this text so it reads as professional and well structured, keeping the original meaning.",
    "summary": "Write a concise summary of this text that keeps the main points and key facts.",
    "bullet_points": "Turn this text into clear, organized bullet points covering every important detail.",
    "formal": "Rewrite this text in a formal tone suitable for business communication.",
    "simple": "Rewrite this text in plain, easy to follow language without dropping important information.",
    "blog_post": "Rewrite this text as a blog post with an introduction, a body and a conclusion.",
    "email": "Rewrite this text as a professional email with a greeting, a body and a closing.",
    "presentation": "Rewrite this text as talking points that are easy to present out loud.",
    "social_media": "Rewrite this text as a short social media post for a professional audience.",
    "storytelling": "Retell this text as a story with a clear narrative flow.",
    "technical": "Rewrite this text with more technical precision for an expert audience.",
    "casual": "Rewrite this text in a relaxed, conversational tone.",
}


def is_known_prompt_type(prompt_type: str) -> bool:
    return prompt_type == CUSTOM_PROMPT_TYPE or prompt_type in DEFAULT_PROMPTS


def resolve_prompt(prompt_type: str, custom_prompt: str = "") -> str:
    """Text sent to the model for a preset, or the custom prompt when selected."""
    if prompt_type == CUSTOM_PROMPT_TYPE:
        return custom_prompt.strip() or DEFAULT_PROMPTS[DEFAULT_PROMPT_TYPE]
    return DEFAULT_PROMPTS.get(prompt_type, DEFAULT_PROMPTS[DEFAULT_PROMPT_TYPE])
