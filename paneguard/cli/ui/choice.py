"""Choice prompts used for confirmation verdicts and destructive commands.

On a terminal the prompts use prompt_toolkit's ``choice`` dialog. When a
``prompt_fn`` is injected (tests, piped stdin) the options are rendered as a
numbered text prompt and the answer is matched by number or shortcut.
"""

from __future__ import annotations

import html
import sys
from typing import Any, Callable, Optional

from prompt_toolkit.filters import is_done
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.shortcuts import choice
from prompt_toolkit.styles import Style

from paneguard.core.permissions import ConfirmationChoice


PromptFn = Callable[[str], str]


class ChoiceOption:
    """A single option: the value returned, the label shown, and a shortcut key."""

    def __init__(self, value: str, label: str, shortcut: Optional[str] = None):
        self.value = value
        self.label = label
        self.shortcut = shortcut or value[:1]

    def __repr__(self) -> str:
        return f"ChoiceOption(value={self.value!r}, label={self.label!r})"


CONFIRMATION_OPTIONS: list[ChoiceOption] = [
    ChoiceOption(ConfirmationChoice.ALLOW_ONCE.value, "Yes", "y"),
    ChoiceOption(ConfirmationChoice.ALWAYS_ALLOW.value, "Yes, and always allow this", "a"),
    ChoiceOption(ConfirmationChoice.DENY_ONCE.value, "No", "n"),
    ChoiceOption(ConfirmationChoice.ALWAYS_DENY.value, "No, and always deny this", "d"),
]


def neutral_choice_style() -> Style:
    return Style.from_dict(
        {
            "frame.border": "#7f8fa6",
            "selected-option": "bold",
            "option": "#d7e3f4",
            "title": "#c7d2e6",
            "question": "#e8ecf5",
            "warning": "#ff6b6b",
            "number": "#9fb3d1",
        }
    )


def render_options_prompt(prompt: str, options: list[ChoiceOption]) -> str:
    """Render a numbered text prompt."""
    border = "─" * 80
    lines = [border, prompt, ""]
    for idx, opt in enumerate(options, start=1):
        prefix = "❯" if idx == 1 else " "
        lines.append(f"{prefix} {idx}. {opt.label}")
    numeric_choices = "/".join(str(i) for i in range(1, len(options) + 1))
    shortcut_choices = "/".join(opt.shortcut for opt in options)
    lines.append(f"Choice ({numeric_choices} or {shortcut_choices}): ")
    return "\n".join(lines)


def match_answer(answer: str, options: list[ChoiceOption], default: str) -> str:
    """Map a typed answer (number, shortcut or value) to an option value."""
    normalized = answer.strip().lower()
    for idx, opt in enumerate(options, start=1):
        if normalized in (str(idx), opt.shortcut.lower(), opt.value.lower()):
            return opt.value
    return default


def prompt_choice(
    message: str,
    options: list[ChoiceOption],
    *,
    title: Optional[str] = None,
    warning: Optional[str] = None,
    esc_value: Optional[str] = None,
    prompt_fn: Optional[PromptFn] = None,
) -> str:
    """Ask the user to pick one of ``options`` and return its value.

    ESC (or an unrecognized typed answer) selects ``esc_value``, which
    defaults to the last option.
    """
    fallback = esc_value or options[-1].value

    if prompt_fn is not None or not sys.stdin.isatty():
        text = message if not title else f"{title}\n{message}"
        if warning:
            text += f"\n{warning}"
        responder = prompt_fn or input
        try:
            answer = responder(render_options_prompt(text, options))
        except EOFError:
            return fallback
        return match_answer(answer, options, fallback)

    prompt_html = ""
    if title:
        prompt_html += f"<title>{html.escape(title)}</title>\n"
    prompt_html += f"<question>{html.escape(message)}</question>"
    if warning:
        prompt_html += f"\n<warning>{html.escape(warning)}</warning>"

    key_bindings = KeyBindings()

    @key_bindings.add("escape", eager=True)
    def _esc_handler(event: Any) -> None:
        event.app.exit(result=fallback, style="class:aborting")

    return choice(
        message=HTML(f"\n{prompt_html}\n"),
        options=[(opt.value, opt.label) for opt in options],
        style=neutral_choice_style(),
        show_frame=~is_done,
        key_bindings=key_bindings,
    )


def prompt_confirmation_choice(
    action_preview: str,
    reason: Optional[str] = None,
    *,
    prompt_fn: Optional[PromptFn] = None,
) -> ConfirmationChoice:
    """Ask a human to resolve a ``confirm`` verdict. ESC means deny once."""
    lines = [action_preview]
    if reason:
        lines.append(f"  {reason}")
    lines.append("  Do you want to proceed?")
    value = prompt_choice(
        "\n".join(lines),
        CONFIRMATION_OPTIONS,
        title="Permission required",
        esc_value=ConfirmationChoice.DENY_ONCE.value,
        prompt_fn=prompt_fn,
    )
    return ConfirmationChoice(value)


def prompt_yes_no(message: str, *, prompt_fn: Optional[PromptFn] = None) -> bool:
    """Yes/no question; anything other than yes is no."""
    answer = prompt_choice(
        message,
        [ChoiceOption("y", "Yes"), ChoiceOption("n", "No")],
        esc_value="n",
        prompt_fn=prompt_fn,
    )
    return answer == "y"


__all__ = [
    "CONFIRMATION_OPTIONS",
    "ChoiceOption",
    "match_answer",
    "prompt_choice",
    "prompt_confirmation_choice",
    "prompt_yes_no",
    "render_options_prompt",
]
