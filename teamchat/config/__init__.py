"""Configuration for the team chat service."""

from teamchat.config.settings import TeamChatConfig, get_settings

__all__ = ["TeamChatConfig", "get_settings"]
