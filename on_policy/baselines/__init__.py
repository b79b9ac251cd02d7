"""Algorithm implementations built on :mod:`on_policy.common`."""
