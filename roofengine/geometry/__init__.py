"""Plan geometry: primitives, polygon booleans and footprint preparation."""
