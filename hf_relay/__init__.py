"""Hugging Face 임베딩 릴레이."""

__version__ = "1.1.0"
