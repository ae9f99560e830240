"""Storefront read models consumed by the notification engine."""
