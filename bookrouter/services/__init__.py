"""Domain services for the book recommendation pipeline."""
