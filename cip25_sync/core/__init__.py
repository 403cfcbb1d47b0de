"""Configuration, logging, persistence plumbing, metrics and scheduling."""
