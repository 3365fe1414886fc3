"""Small calendar helpers shared by the analysis modules."""
