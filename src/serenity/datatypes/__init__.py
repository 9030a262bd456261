"""Immutable domain entities cached by Serenity."""
