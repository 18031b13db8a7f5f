"""Streaming chat client with a shared live/replay transcript model."""
