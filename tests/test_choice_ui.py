"""Tests for the confirmation prompt helpers."""

from paneguard.cli.ui.choice import (
    CONFIRMATION_OPTIONS,
    ChoiceOption,
    match_answer,
    prompt_confirmation_choice,
    prompt_yes_no,
    render_options_prompt,
)
from paneguard.core.permissions import ConfirmationChoice


def test_render_options_prompt_numbers_options():
    rendered = render_options_prompt("Proceed?", [ChoiceOption("y", "Yes"), ChoiceOption("n", "No")])
    lines = rendered.splitlines()
    assert "Proceed?" in lines
    assert "❯ 1. Yes" in lines
    assert "  2. No" in lines
    assert lines[-1] == "Choice (1/2 or y/n): "


def test_match_answer_accepts_number_shortcut_and_value():
    assert match_answer("2", CONFIRMATION_OPTIONS, "x") == ConfirmationChoice.ALWAYS_ALLOW.value
    assert match_answer(" D ", CONFIRMATION_OPTIONS, "x") == ConfirmationChoice.ALWAYS_DENY.value
    assert match_answer("deny_once", CONFIRMATION_OPTIONS, "x") == ConfirmationChoice.DENY_ONCE.value
    assert match_answer("maybe", CONFIRMATION_OPTIONS, "x") == "x"


def test_prompt_confirmation_choice_with_injected_prompt():
    seen = []

    def _prompt(text):
        seen.append(text)
        return "1"

    choice = prompt_confirmation_choice("Command: npm install", "No rule matches", prompt_fn=_prompt)

    assert choice is ConfirmationChoice.ALLOW_ONCE
    assert "Command: npm install" in seen[0]
    assert "No rule matches" in seen[0]


def test_unrecognized_answer_denies_once():
    choice = prompt_confirmation_choice("Command: x", prompt_fn=lambda _: "whatever")
    assert choice is ConfirmationChoice.DENY_ONCE


def test_end_of_input_denies_once():
    def _eof(_):
        raise EOFError

    assert prompt_confirmation_choice("Command: x", prompt_fn=_eof) is ConfirmationChoice.DENY_ONCE


def test_prompt_yes_no():
    assert prompt_yes_no("Reset?", prompt_fn=lambda _: "y") is True
    assert prompt_yes_no("Reset?", prompt_fn=lambda _: "") is False
