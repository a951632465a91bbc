"""Order progress tracking: stage catalog, progress ledger and transitions."""
