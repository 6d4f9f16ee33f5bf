"""Tiny terminal UI helpers (prompt_toolkit-based).

Kept apart from the review workflow so prompts can be driven in tests with a
pipe input and ``DummyOutput``.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggest, Suggestion
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.filters import Condition
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.keys import Keys
from prompt_toolkit.styles import Style
from prompt_toolkit.validation import ValidationError, Validator

from .tags import normalize_tag_name, validate_tag_name

_STYLE = Style.from_dict({"auto-suggestion": "fg:#888888"})


class _PrefixSuggest(AutoSuggest):
    """Grey inline completion of the first vocabulary word with the typed prefix."""

    def __init__(self, vocab: Sequence[str]) -> None:
        self._vocab = list(vocab)

    def get_suggestion(self, buffer, document):
        text = document.text
        if not text:
            return None
        lower = text.lower()
        for w in self._vocab:
            wl = w.lower()
            if wl == lower:
                return None
            if wl.startswith(lower):
                return Suggestion(w[len(text) :]) if len(w) > len(text) else None
        return None


class _TagValidator(Validator):
    def __init__(self, vocab: Sequence[str], allow_create: bool) -> None:
        self._lower = {w.lower() for w in vocab}
        self._allow_create = allow_create

    def validate(self, document) -> None:
        text = document.text.strip()
        if not text or text.lower() in self._lower:
            return
        if not self._allow_create:
            raise ValidationError(message="Choose a tag from the list")
        v = validate_tag_name(text)
        if not v.ok:
            raise ValidationError(message=v.reason or "Invalid tag")


def _bind_session(session: PromptSession | None, kb: KeyBindings) -> PromptSession:
    if session is None:
        return PromptSession(key_bindings=kb)
    return PromptSession(
        input=getattr(session, "input", None),
        output=getattr(session, "output", None),
        key_bindings=kb,
    )


def select_tag(
    tags: Sequence[str] | Iterable[str],
    *,
    default: str | None = None,
    message: str = "Tag (Enter to accept, empty to skip): ",
    session: PromptSession | None = None,
    allow_create: bool = True,
) -> str | None:
    """Prompt for a tag with completion; returns ``None`` on an empty answer.

    Behavior
    --------
    - The buffer starts with ``default``; Enter accepts it.
    - The first printable keystroke replaces the pre-filled default; Space or
      Backspace edit it instead.
    - Tab or Down opens the completion menu on an empty buffer, or completes
      the typed prefix. Enter also completes a unique-looking prefix.
    - Names not in ``tags`` are accepted when ``allow_create`` (validated with
      :func:`~finance_pipeline.tags.validate_tag_name`) and rejected otherwise.
    - Known names are returned with their vocabulary spelling.
    """

    words = list(tags)
    canonical = {w.lower(): w for w in words}
    completer = WordCompleter(words, ignore_case=True, match_middle=True, sentence=False)

    kb = KeyBindings()
    menu_opened = False
    menu_index = 0
    replace_mode = bool(default)

    def _best_prefix_match(text: str) -> str | None:
        if not text:
            return None
        lower = text.lower()
        for w in words:
            wl = w.lower()
            if wl == lower:
                return None
            if wl.startswith(lower):
                return w
        return None

    def _open_or_advance_menu(b) -> None:
        nonlocal menu_opened, menu_index
        if b.complete_state is None:
            b.start_completion(select_first=True)
            menu_index = 0
        else:
            b.complete_next()
            menu_index += 1
        menu_opened = True

    @kb.add("down", eager=True)
    def _(event) -> None:  # pragma: no cover - integration path
        nonlocal replace_mode
        replace_mode = False
        _open_or_advance_menu(event.app.current_buffer)

    @kb.add("tab", eager=True)
    def _(event) -> None:  # pragma: no cover
        nonlocal replace_mode
        replace_mode = False
        b = event.app.current_buffer
        cand = _best_prefix_match(b.document.text)
        if cand:
            b.insert_text(cand[len(b.document.text) :])
        else:
            _open_or_advance_menu(b)

    @kb.add("enter", eager=True)
    def _(event) -> None:  # pragma: no cover
        b = event.app.current_buffer
        cs = b.complete_state
        if cs is not None and cs.current_completion is not None:
            b.apply_completion(cs.current_completion)
        elif (cand := _best_prefix_match(b.document.text)) is not None:
            b.insert_text(cand[len(b.document.text) :])
        elif menu_opened and not b.document.text and words:
            b.insert_text(words[max(0, min(menu_index, len(words) - 1))])
        b.validate_and_handle()

    @kb.add("backspace", eager=True)
    def _(event) -> None:  # pragma: no cover
        nonlocal replace_mode
        replace_mode = False
        event.app.current_buffer.delete_before_cursor(1)

    # Navigation/editing keys leave replace mode and do their usual thing.
    _nav_actions: dict[str, Any] = {
        "left": lambda b: b.cursor_left(1),
        "right": lambda b: b.cursor_right(1),
        "home": lambda b: b.cursor_home(),
        "end": lambda b: b.cursor_end(),
        "delete": lambda b: b.delete(1),
        "c-a": lambda b: b.cursor_home(),
        "c-e": lambda b: b.cursor_end(),
    }
    for key, action in _nav_actions.items():

        @kb.add(key, eager=True)
        def _(event, _action=action) -> None:  # pragma: no cover
            nonlocal replace_mode
            replace_mode = False
            _action(event.app.current_buffer)

    @kb.add(Keys.Any, filter=Condition(lambda: replace_mode), eager=True)
    def _(event) -> None:  # pragma: no cover
        nonlocal replace_mode
        data = getattr(event, "data", "") or ""
        if not data or not data.isprintable():
            return
        b = event.app.current_buffer
        replace_mode = False
        if data == " ":
            b.insert_text(" ")
            return
        b.delete_before_cursor(len(b.document.text_before_cursor))
        b.delete(len(b.document.text_after_cursor))
        b.insert_text(data)

    sess = _bind_session(session, kb)
    result = sess.prompt(
        message=message,
        completer=completer,
        default=default or "",
        key_bindings=kb,
        auto_suggest=_PrefixSuggest(words),
        validator=_TagValidator(words, allow_create),
        validate_while_typing=False,
        style=_STYLE,
    )

    text = normalize_tag_name(result or "")
    if not text:
        return None
    return canonical.get(text.lower(), text)


__all__ = ["select_tag"]
