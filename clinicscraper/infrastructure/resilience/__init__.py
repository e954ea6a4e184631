"""API Resilience Implementations.

Contains the retry executor (exponential backoff with provider-suggested
delays) and the bounded concurrency scheduler.
Bounded Context: API Resilience
"""
