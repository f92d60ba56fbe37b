"""Call context and ABI codec of the execution host."""
