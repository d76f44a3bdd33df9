"""Data models for messages, lifecycle events and turn outcomes."""
