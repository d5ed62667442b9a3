"""Account records, the credential store and persistence."""
