"""Configuration, errors, ingest and reference tables shared by the analyzers."""
