"""Adaptive word selection for practice sessions.

Previously missed words are prioritised but capped at half of the session so a
practice round is never purely remedial, and the final order is shuffled so the
remedial words are not simply the first few.
"""
from __future__ import annotations

import random
from typing import Iterable, List, Optional, Sequence


def _dedupe(words: Iterable[str]) -> List[str]:
	seen: set[str] = set()
	unique: List[str] = []
	for word in words:
		key = word.strip().lower()
		if not key or key in seen:
			continue
		seen.add(key)
		unique.append(word)
	return unique


def priority_cap(target_count: int) -> int:
	return max(0, target_count) // 2


def select_practice_words(
	all_words: Sequence[str],
	prior_missed_words: Iterable[str],
	target_count: int,
	*,
	rng: Optional[random.Random] = None,
) -> List[str]:
	rng = rng or random.Random()
	words = _dedupe(all_words)
	size = min(max(0, target_count), len(words))
	if size == 0:
		return []

	missed = {w.strip().lower() for w in prior_missed_words if w and w.strip()}
	priority = [w for w in words if w.strip().lower() in missed]
	remainder = [w for w in words if w.strip().lower() not in missed]
	rng.shuffle(priority)
	rng.shuffle(remainder)

	take_priority = min(priority_cap(target_count), len(priority))
	selection = priority[:take_priority]
	selection.extend(remainder[: size - len(selection)])
	if len(selection) < size:
		# Not enough fresh words: backfill with the remaining missed ones
		selection.extend(priority[take_priority : take_priority + size - len(selection)])

	rng.shuffle(selection)
	return selection
