"""Core decision, safety, generation and storage components."""
