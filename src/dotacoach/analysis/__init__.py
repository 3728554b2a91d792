"""Single-match detectors and history-level reports."""
