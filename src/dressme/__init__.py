"""DressMe: virtual try-on looks, background edits and videos with Gemini and Veo."""

__version__ = "0.1.0"
