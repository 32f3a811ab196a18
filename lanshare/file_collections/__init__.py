"""Collection Aggregator: many artifacts behind one share id."""
