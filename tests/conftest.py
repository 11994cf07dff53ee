"""Pytest configuration shared by the provider tests."""

import sys
from pathlib import Path

# arm_provider is a namespace package under src/, azure_mock lives beside the tests
for path in (Path(__file__).parent.parent / "src", Path(__file__).parent):
    sys.path.insert(0, str(path))
