"""
Inverted index MapReduce example.
Creates an index mapping each word to the lines it appears in.
"""

import string


def map_function(key, value):
    """
    Map function: emit (word, document_id) for each word.

    Args:
        key: Byte offset of the line (used as document ID)
        value: Text line

    Yields:
        (word, document_id) tuples
    """
    words = value.translate(str.maketrans('', '', string.punctuation)).split()

    for word in words:
        if word:
            yield (word.lower(), f"doc_{key}")


def reduce_function(key, values):
    """
    Reduce function: collect all document IDs for a word.

    Yields:
        (word, comma-separated unique document IDs) tuple
    """
    unique_docs = sorted(set(values))
    yield (key, ','.join(unique_docs))


def combiner_function(key, values):
    """Combiner function: remove local duplicates."""
    for doc in set(values):
        yield (key, doc)


def inverted_index_job():
    return {
        "name": "inverted-index",
        "job-file": __file__,
        "input-format": "text",
        "output-format": "text",
        "compress-output": False,
    }
