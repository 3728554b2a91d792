"""Per-player analysis pipeline and its collaborator interfaces."""
