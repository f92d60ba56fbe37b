"""Core primitives: configuration, logging, hashing and the execution host."""
