"""Domain models: requests, responses, session records and batch results."""
