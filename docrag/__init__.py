"""docrag: answer questions from a private document corpus with a local Ollama model."""
