from __future__ import annotations

from companion.core import messages as messages_module
from companion.core.messages import MESSAGES, get_message, supported_languages


def test_every_entry_has_english_and_bengali() -> None:
    assert supported_languages() == {"en", "bn"}
    for key, variants in MESSAGES.items():
        assert set(variants) == {"en", "bn"}, key


def test_unknown_language_falls_back_to_english() -> None:
    assert get_message("errors.general", "fr") == get_message("errors.general", "en")
    assert get_message("errors.general", None) == "Sorry, I encountered an issue. Please try again."


def test_unknown_key_returns_the_key() -> None:
    assert get_message("errors.nope", "bn") == "errors.nope"


def test_placeholders_are_filled_or_left_alone(monkeypatch) -> None:
    monkeypatch.setattr(
        messages_module,
        "MESSAGES",
        {**MESSAGES, "test.greeting": {"en": "Hello {name}!", "bn": "হ্যালো {name}!"}},
    )

    assert get_message("test.greeting", "en", name="Mina") == "Hello Mina!"
    assert get_message("test.greeting", "bn", name="Mina") == "হ্যালো Mina!"
    assert get_message("test.greeting", "en") == "Hello {name}!"
    assert get_message("test.greeting", "en", other="x") == "Hello {name}!"
