"""Assessment item state: registry, optimistic mutation engine, debounce coalescer."""
