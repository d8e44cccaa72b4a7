"""
Shuffle engine.

Two strategies:

Plain (ShuffleMode.RANDOM)
    Fisher-Yates over the whole list.

Smart (ShuffleMode.SMART)
    Files absent from the recency history are shuffled and placed first;
    files present in the history follow in their previous relative order.
    With N files and a history of at most W entries, the first N - W
    positions never repeat a recently played file, while every file still
    comes round once per cycle.

    If the whole catalog is inside the history, the history is cut down to
    its most recent entry and the split is retried once. When even that
    leaves nothing eligible (a single-file catalog), a plain shuffle is used.

All functions are pure: they return new lists and never mutate their inputs.
Pass a seeded random.Random for deterministic results.
"""

import random
from typing import List, Optional, Tuple

from .models import ShuffleMode


def plain_shuffle(files: List[str], rng: Optional[random.Random] = None) -> List[str]:
    """Return a Fisher-Yates shuffled copy of files."""
    rng = rng or random.Random()
    shuffled = list(files)
    rng.shuffle(shuffled)
    return shuffled


def smart_shuffle(
    files: List[str],
    history: List[str],
    rng: Optional[random.Random] = None,
) -> Tuple[List[str], List[str]]:
    """
    Shuffle while keeping recently played files at the end.

    Args:
        files: Current playlist order
        history: Recently played files, oldest first
        rng: Random source

    Returns:
        (new_order, history) where history may have been truncated
    """
    rng = rng or random.Random()
    history = list(history)

    recent = set(history)
    eligible = [f for f in files if f not in recent]

    if not eligible and len(history) > 1:
        history = history[-1:]
        recent = set(history)
        eligible = [f for f in files if f not in recent]

    if not eligible:
        return plain_shuffle(files, rng), history

    ineligible = [f for f in files if f in recent]
    rng.shuffle(eligible)
    return eligible + ineligible, history


def shuffle_files(
    files: List[str],
    mode: ShuffleMode,
    history: List[str],
    rng: Optional[random.Random] = None,
) -> Tuple[List[str], List[str]]:
    """
    Explicit shuffle request: always reorders.

    ShuffleMode.NONE is treated as a plain shuffle because the caller asked
    for a shuffle; use arrange_for_cycle() to respect NONE.

    Returns:
        (new_order, history)
    """
    if mode == ShuffleMode.SMART:
        return smart_shuffle(files, history, rng)
    return plain_shuffle(files, rng), list(history)


def arrange_for_cycle(
    files: List[str],
    mode: ShuffleMode,
    history: List[str],
    rng: Optional[random.Random] = None,
) -> Tuple[List[str], List[str]]:
    """
    Order for a new streaming cycle (loop restart or seamless manifest).

    ShuffleMode.NONE keeps the current order.
    """
    if mode == ShuffleMode.NONE:
        return list(files), list(history)
    return shuffle_files(files, mode, history, rng)


def record_played(history: List[str], path: str, window: int) -> List[str]:
    """
    Push a played file onto the recency history.

    A file already in the history is not moved. The oldest entries are
    dropped until the history fits the window.

    Returns:
        New history, oldest first
    """
    updated = list(history)
    if path not in updated:
        updated.append(path)
    while len(updated) > window:
        updated.pop(0)
    return updated
