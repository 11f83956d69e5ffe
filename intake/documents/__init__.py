"""Document processing: extraction, classification, issues and lifecycle."""
