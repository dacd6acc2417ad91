"""Monthly mail cycle: period derivation, arrivals, completion gate, composer, controller."""
