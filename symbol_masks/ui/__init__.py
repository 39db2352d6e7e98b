"""Qt layer of symbol masks."""
