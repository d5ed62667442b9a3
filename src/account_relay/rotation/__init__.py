"""Account selection for request dispatch."""
