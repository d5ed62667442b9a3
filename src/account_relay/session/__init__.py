"""Session token lifecycle and the background refresh scheduler."""
