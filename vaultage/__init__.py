"""vaultage - classify, plan and age markdown notes with safe rollback."""

__version__ = "0.1.0"
