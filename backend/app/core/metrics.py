"""Prometheus metrics for the application"""
from prometheus_client import Counter, REGISTRY


def _counter(name, documentation, labelnames=()):
    """Create a counter, reusing the registered one if the module is re-imported"""
    try:
        return Counter(name, documentation, labelnames)
    except ValueError:
        return REGISTRY._names_to_collectors.get(name)


# Word batch metrics
word_batches_counter = _counter(
    'vocab_word_batches_total',
    'Total number of word batches handled',
    ['action', 'outcome']
)

word_conflicts_counter = _counter(
    'vocab_word_conflicts_total',
    'Total number of conflicting word keys reported',
    ['kind']
)

words_inserted_counter = _counter(
    'vocab_words_inserted_total',
    'Total number of words persisted'
)

# Auth metrics
login_attempts_counter = _counter(
    'vocab_login_attempts_total',
    'Total number of login attempts',
    ['status']
)
