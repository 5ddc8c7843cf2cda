"""Subsequence fuzzy matching shared by the process and syscall lists."""

# Score weights. Only the relative ordering they produce matters.
MATCH_SCORE = 16  # Every matched character
CONSECUTIVE_BONUS = 12  # Matched character directly follows the previous match
START_BONUS = 10  # Match at index 0 of the candidate
BOUNDARY_BONUS = 8  # Match right after a separator
SEPARATORS = frozenset(" /_")

# Structural scores are scaled by this so the length penalty only breaks ties.
LENGTH_SCALE = 1024

BASELINE_SCORE = 0


def _position_bonus(candidate: str, index: int) -> int:
    if index == 0:
        return START_BONUS
    if candidate[index - 1] in SEPARATORS:
        return BOUNDARY_BONUS
    return 0


def _fold(text: str) -> list[str]:
    """Lowercase one character at a time so indices stay aligned with text."""
    # "İ".lower() is two code points; keep only the first
    return [char.lower()[:1] or char for char in text]


def is_subsequence(query: str, candidate: str) -> bool:
    """Check whether query's characters appear in candidate in order (case-insensitive)."""
    remaining = iter(_fold(candidate))
    return all(char in remaining for char in _fold(query))


def score(query: str, candidate: str) -> int | None:
    """
    Score how well query fuzzy-matches candidate.

    Returns None when the query is not a case-insensitive subsequence of the
    candidate. The empty query matches everything with a fixed baseline.
    Higher scores mean better matches: contiguous runs, matches at the start
    of the candidate or of a word, and shorter candidates rank first.
    """
    if not query:
        return BASELINE_SCORE
    if not is_subsequence(query, candidate):
        return None

    needle = _fold(query)
    haystack = _fold(candidate)
    n = len(haystack)

    # best[j]: best score for the query prefix so far with its last char matched at j
    best: list[int | None] = [None] * n
    for i, char in enumerate(needle):
        current: list[int | None] = [None] * n
        running_max: int | None = None  # max of best[0..j-2], for non-adjacent matches
        for j in range(n):
            if j >= 2 and best[j - 2] is not None:
                prev = best[j - 2]
                running_max = prev if running_max is None else max(running_max, prev)
            if haystack[j] != char:
                continue
            gain = MATCH_SCORE + _position_bonus(candidate, j)
            if i == 0:
                current[j] = gain
                continue
            options = []
            if running_max is not None:
                options.append(running_max + gain)
            if j >= 1 and best[j - 1] is not None:
                options.append(best[j - 1] + gain + CONSECUTIVE_BONUS)
            if options:
                current[j] = max(options)
        best = current

    structural = max(value for value in best if value is not None)
    return structural * LENGTH_SCALE - min(n, LENGTH_SCALE - 1)
