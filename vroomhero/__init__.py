"""GPS speedometer with cached speed-limit lookups."""
