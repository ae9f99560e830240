"""Shared configuration and type definitions."""
