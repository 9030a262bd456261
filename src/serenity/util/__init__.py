"""
Utility helpers for Serenity.

- **logger.py**: Centralized logging configuration with coloured console output
  through prompt_toolkit, a session-shared rotating log file, and suppression
  of noisy library loggers.
"""
