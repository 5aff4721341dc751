"""Output layer — render ServiceResult as rich text or JSON."""
