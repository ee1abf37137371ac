"""Services package - key building, pooling, query building and function evaluation."""
