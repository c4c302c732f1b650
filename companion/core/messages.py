"""Bilingual (English/Bengali) user-facing strings shared by agents and the orchestrator."""

from __future__ import annotations

import re
from typing import Any, Mapping

from .logging import get_logger

logger = get_logger(name=__name__)

DEFAULT_LANGUAGE = "en"

_PLACEHOLDER = re.compile(r"\{(\w+)\}")

MESSAGES: Mapping[str, Mapping[str, str]] = {
    "errors.general": {
        "en": "Sorry, I encountered an issue. Please try again.",
        "bn": "দুঃখিত, একটি সমস্যা হয়েছে। আবার চেষ্টা করুন।",
    },
    "errors.processing": {
        "en": "I'm sorry, I couldn't process that request. Please try again.",
        "bn": "দুঃখিত, আমি সেই অনুরোধটি প্রক্রিয়া করতে পারিনি। আবার চেষ্টা করুন।",
    },
    "errors.tools": {
        "en": "I tried to use my tools for that, but none of them succeeded. Please try again.",
        "bn": "আমি টুল ব্যবহার করার চেষ্টা করেছি, কিন্তু কোনোটি সফল হয়নি। আবার চেষ্টা করুন।",
    },
    "agents.learning.error": {
        "en": "Sorry, I encountered an issue. Please try again.",
        "bn": "দুঃখিত, একটি সমস্যা হয়েছে। আবার চেষ্টা করুন।",
    },
    "agents.task.error": {
        "en": "Sorry, I had trouble with that task operation.",
        "bn": "দুঃখিত, টাস্ক ম্যানেজমেন্টে সমস্যা হয়েছে।",
    },
    "agents.code.error": {
        "en": "Sorry, I had trouble analyzing that code.",
        "bn": "দুঃখিত, কোড বিশ্লেষণে সমস্যা হয়েছে।",
    },
    "agents.roadmap.error": {
        "en": "Sorry, I had trouble accessing roadmap information.",
        "bn": "দুঃখিত, রোডম্যাপ তথ্য পেতে সমস্যা হয়েছে।",
    },
    "agents.general.error": {
        "en": "Sorry, I encountered an issue. Please try again.",
        "bn": "দুঃখিত, একটি সমস্যা হয়েছে। আবার চেষ্টা করুন।",
    },
    "language.directive": {
        "en": "Respond in English.",
        "bn": "IMPORTANT: Respond in Bengali (বাংলা). Use Bengali script for your entire response.",
    },
    "support.encouragement": {
        "en": "You're doing great! Keep going, every step counts.",
        "bn": "আপনি দুর্দান্ত করছেন! চালিয়ে যান, প্রতিটি পদক্ষেপ গুরুত্বপূর্ণ।",
    },
}


def supported_languages() -> set[str]:
    languages: set[str] = set()
    for variants in MESSAGES.values():
        languages.update(variants)
    return languages


def get_message(key: str, language: str | None = None, **variables: Any) -> str:
    """Return the catalog string for ``key`` in ``language``.

    Unknown languages fall back to English and unknown keys return the key
    itself. ``{name}`` style placeholders are filled from ``variables``;
    placeholders without a value are left untouched.
    """
    variants = MESSAGES.get(key)
    if variants is None:
        logger.warning("message_key_missing", key=key)
        return key
    text = variants.get(language or DEFAULT_LANGUAGE) or variants[DEFAULT_LANGUAGE]
    if not variables:
        return text

    def _substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        if name in variables:
            return str(variables[name])
        return match.group(0)

    return _PLACEHOLDER.sub(_substitute, text)
