"""Utility helpers for the SongLingo backend."""

from .security import AuthenticationError, TokenPayload, decode_access_token

__all__ = [
    "AuthenticationError",
    "TokenPayload",
    "decode_access_token",
]
