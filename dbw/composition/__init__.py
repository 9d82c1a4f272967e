"""Resource graph composition: templates, deferred values and providers."""
