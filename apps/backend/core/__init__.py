"""
Shared building blocks: settings, errors, cancellation, HTTP transport and rate limiting.
"""
