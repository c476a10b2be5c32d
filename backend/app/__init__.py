"""Tour route optimizer backend."""
