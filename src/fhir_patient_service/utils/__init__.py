"""Utilities module: exceptions and id generation."""
