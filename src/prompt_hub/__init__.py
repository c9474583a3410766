"""
Prompt Hub

Local storage for reusable text prompts with rotating backups and
optional sync to a GitHub or Gitee repository through their content API.
"""

__version__ = "1.0.0"
__author__ = "Prompt Hub"
__description__ = "Prompt library with local backups and GitHub/Gitee sync"

from .config.settings import AppSettings, SyncConfig
from .hub import PromptHub

__all__ = ["AppSettings", "PromptHub", "SyncConfig"]
