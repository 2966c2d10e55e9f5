"""Console REPL and the background sync runner."""
