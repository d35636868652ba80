"""Infrastructure adapters: data API, push channel and timers."""
