"""Bundle loading: module providers and the evaluation sandbox."""
