"""
PredictionBook ledger extractor.

This package retrieves the public prediction ledger: the paginated list of
predictions and each prediction's responses. Fetching goes through a single
rate-limited, bounded-concurrency acquirer (predictionbook.common.acquirer);
the crawler and the response fan-out (predictionbook.driver) only decide
which pages to ask for and how to merge what comes back.
"""
