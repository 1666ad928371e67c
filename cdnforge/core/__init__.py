"""Core publishing pipeline: scanner, resolver, oracle, transforms, publisher."""
