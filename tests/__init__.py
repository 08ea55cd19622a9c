"""Test package for the Stroop treadmill task.

Core modules are exercised with an injected FakeClock and seeded RNGs so
every run is deterministic. UI tests run headlessly using pygame's dummy
video/audio drivers. Run ``pytest`` from the project root.
"""
