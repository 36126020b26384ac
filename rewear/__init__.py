"""ReWear listing backend."""
