"""Generic helpers that don't depend on the rest of lasercal."""

pass
