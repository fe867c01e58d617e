"""
Pytest configuration and fixtures for the noiselab test suite.
"""
import os
import sys

import pytest


def pytest_configure(config):
    """Make the root module importable without installing it."""
    package_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    if package_root not in sys.path:
        sys.path.insert(0, package_root)


class CountingSynthesizer:
    """Cheap stand-in for generate_noise_pattern that records every call."""

    def __init__(self):
        self.calls = []

    def __call__(self, mean, std_dev, opacity, sampler):
        self.calls.append((mean, std_dev, opacity))
        return f"data:image/png;base64,fake-{mean}-{std_dev}-{opacity}-{len(self.calls)}"


@pytest.fixture
def counting_synthesizer():
    return CountingSynthesizer()


@pytest.fixture
def seeded_sampler():
    from noiselab import NoiseSampler
    return NoiseSampler(seed=1234)


@pytest.fixture
def fake_cache(counting_synthesizer):
    from noiselab import NoisePatternCache
    return NoisePatternCache(synthesizer=counting_synthesizer)
