"""Budget Keeper backend."""
