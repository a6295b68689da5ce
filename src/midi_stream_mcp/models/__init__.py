"""Data models for session configuration."""

from .config import Parameter, SessionConfig
