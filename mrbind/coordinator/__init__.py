"""Job descriptors, options and the reference job manager."""
