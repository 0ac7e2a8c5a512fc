"""
Classic MapReduce word count example.
Counts the frequency of each word in text input.

Run it with:
    mrbind-job --job examples/wordcount.py:wordcount_job --input books/ --output counts/
"""

import string

from mrbind.worker.function_loader import register


@register("wordcount.map")
def map_function(key, value):
    """
    Map function: emit (word, 1) for each word in the line.

    Args:
        key: Byte offset of the line (unused)
        value: Text line

    Yields:
        (word, 1) tuples
    """
    words = value.translate(str.maketrans('', '', string.punctuation)).split()

    for word in words:
        if word:  # Skip empty strings
            yield (word.lower(), 1)


@register("wordcount.reduce")
def reduce_function(key, values):
    """
    Reduce function: sum all counts for a word.

    Args:
        key: Word
        values: Iterator over counts

    Yields:
        (word, total_count) tuple
    """
    yield (key, sum(values))


@register("wordcount.combine")
def combiner_function(key, values):
    """Combiner function: pre-aggregate counts locally (same as reduce)."""
    yield (key, sum(values))


def wordcount_job():
    """Options for a word count over text files, written as text"""
    return {
        "name": "wordcount",
        "map": f"{__file__}:map_function",
        "reduce": f"{__file__}:reduce_function",
        "combine": f"{__file__}:combiner_function",
        "input-format": "text",
        "output-format": "text",
        "compress-output": False,
    }
