"""Notification engine: variables, rendering, dispatch and scheduling."""
