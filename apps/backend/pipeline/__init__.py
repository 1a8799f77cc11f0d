"""
Streaming job scraping pipeline.

The listing scanner feeds a pool of rate-limited detail workers; the
orchestrator collects their results and saves them in one batch per table.
"""

__version__ = "1.0.0"
