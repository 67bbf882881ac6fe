"""Handlers for the demo manifest."""

from collections import Counter
from pathlib import Path


def word_stats(args):
    text = Path(args["file"]).read_text(encoding="utf-8")
    counts = Counter(text.split())
    return {
        "words": sum(counts.values()),
        "top": counts.most_common(args.get("top", 3)),
    }
