"""Recognition service client and response validation."""

from .client import GeminiClient, build_gemini_client
from .parser import parse_recognition_response

__all__ = ["GeminiClient", "build_gemini_client", "parse_recognition_response"]
