"""Core configuration, rasterization, prompts, and failure types."""
