"""Domain services backing the transfer pipeline."""
