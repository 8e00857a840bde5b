"""Typing metrics: words per minute, accuracy and progress.

Pure functions only; nothing here reads a clock or touches the network.

Accuracy is positional: every keystroke recomputes it from the current input
by comparing each typed character to the text at the same index. Fixing a
character after a backspace therefore raises accuracy again. The same policy
is used for live progress reports and for the final result.
"""
import math
from typing import Optional

CHARS_PER_WORD = 5


def wpm(typed_length: int, elapsed_seconds: Optional[float]) -> int:
    if not elapsed_seconds or not math.isfinite(elapsed_seconds) or elapsed_seconds <= 0 or typed_length <= 0:
        return 0
    return round((typed_length / CHARS_PER_WORD) / (elapsed_seconds / 60))


def accuracy(correct_count: int, total_typed: int) -> float:
    if total_typed == 0:
        return 100.0
    return max(0.0, correct_count / total_typed * 100)


def progress(typed_length: int, text_length: int) -> float:
    if text_length <= 0:
        return 0.0
    return min(100.0, typed_length / text_length * 100)


def positional_correct(typed: str, text: str) -> int:
    return sum(1 for i, ch in enumerate(typed) if i < len(text) and text[i] == ch)


def typed_accuracy(typed: str, text: str) -> float:
    return accuracy(positional_correct(typed, text), len(typed))


def accept_input(value: str, text: str) -> bool:
    """Forward-only correction policy for a new input value.

    A space may only close a word that matches its target word, and the word
    being typed may not run longer than its target.
    """
    if len(value) > len(text):
        return False
    words = text.split(' ')
    typed_words = value.split(' ')
    if value.endswith(' '):
        idx = len(typed_words) - 2
        completed = typed_words[idx]
        target = words[idx] if idx < len(words) else ''
        return completed == target
    idx = len(typed_words) - 1
    target = words[idx] if idx < len(words) else ''
    return len(typed_words[idx]) <= len(target)


def elapsed_wpm(typed_length: int, started_at: Optional[float], now: float) -> int:
    """WPM measured from a start timestamp; an unset start reads as 0."""
    if started_at is None:
        return 0
    return wpm(typed_length, now - started_at)
