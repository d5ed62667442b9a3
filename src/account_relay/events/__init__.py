"""Job completion notifications and background jobs."""
