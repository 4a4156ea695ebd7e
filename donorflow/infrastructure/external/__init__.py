"""External service adapters: DocuSign and artifact storage."""
