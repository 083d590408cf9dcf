"""Cross-cutting infrastructure: errors, logging, progress events, retries."""
