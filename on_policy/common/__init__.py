"""
common package
==============

Shared building blocks for on-policy algorithms: action-space descriptors,
rollout storage, networks, policies, optimizers, loggers and the trainer.
"""
