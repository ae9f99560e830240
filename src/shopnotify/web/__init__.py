"""HTTP surface: app factory and admin notification endpoints."""
