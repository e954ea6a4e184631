"""clinic-scraper: finds private clinics on Google Maps, filters them with an LLM,
and writes clean lead data."""

__version__ = "1.0.0"
