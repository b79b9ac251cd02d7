"""
Test suites (``*_testers.py``) plus the mini harness they share.

Each suite runs standalone (``python -m on_policy.common.testers.a2c_testers``)
or under pytest.
"""
