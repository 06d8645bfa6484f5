#!/usr/bin/env python3
"""Test script for settings loading from the environment and .env files.

Run from project root:
    python scripts/test_config.py
"""

import os
import sys
import tempfile
from datetime import timedelta
from pathlib import Path
from unittest.mock import patch

from pydantic import ValidationError

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dive_forecast.clients.willyweather_client import WillyWeatherClient
from dive_forecast.config import CACHE_TTL, MAX_ATTEMPTS, ForecastSettings


def write_env(text: str) -> Path:
    tmp = tempfile.NamedTemporaryFile("w", suffix=".env", delete=False)
    with tmp:
        tmp.write(text)
    return Path(tmp.name)


def test_defaults_without_env():
    with patch.dict(os.environ, {}, clear=True):
        settings = ForecastSettings(_env_file=None)

    assert settings.api_key == ""
    assert settings.max_attempts == MAX_ATTEMPTS
    assert settings.cache_ttl == CACHE_TTL


def test_quoted_api_key_in_env_file():
    """Quotes around a .env value are not part of the key."""
    env_file = write_env(
        'WILLYWEATHER_API_KEY="abc123"\n'
        "DIVE_FORECAST_MAX_ATTEMPTS=5\n"
        "UNRELATED_SETTING=ignored\n"
    )
    with patch.dict(os.environ, {}, clear=True):
        settings = ForecastSettings(_env_file=env_file)

    print(f"  api_key={settings.api_key!r}, max_attempts={settings.max_attempts}")

    assert settings.api_key == "abc123"
    assert settings.max_attempts == 5

    client = WillyWeatherClient.from_settings(settings)
    assert client.api_key == "abc123"


def test_environment_overrides():
    env = {
        "WILLYWEATHER_API_KEY": "from-env",
        "DIVE_FORECAST_REQUEST_TIMEOUT": "2.5",
        "DIVE_FORECAST_CACHE_TTL_SECONDS": "600",
        "DIVE_FORECAST_FORECAST_DAYS": "3",
    }
    env_file = write_env("WILLYWEATHER_API_KEY=from-file\n")
    with patch.dict(os.environ, env, clear=True):
        settings = ForecastSettings(_env_file=env_file)

    # Process environment wins over the .env file
    assert settings.api_key == "from-env"
    assert settings.request_timeout == 2.5
    assert settings.cache_ttl == timedelta(seconds=600)
    assert settings.forecast_days == 3


def test_invalid_values_rejected():
    for name, value in [("DIVE_FORECAST_MAX_ATTEMPTS", "many"), ("DIVE_FORECAST_MAX_ATTEMPTS", "0")]:
        with patch.dict(os.environ, {name: value}, clear=True):
            try:
                ForecastSettings(_env_file=None)
            except ValidationError:
                continue
        raise AssertionError(f"Expected ValidationError for {name}={value}")


def test_explicit_values():
    with patch.dict(os.environ, {}, clear=True):
        settings = ForecastSettings(_env_file=None, api_key="direct", search_radius_km=35)

    assert settings.api_key == "direct"
    assert settings.search_radius_km == 35


def run_all_tests():
    """Run all tests and report results."""
    print("\n" + "#"*60)
    print("# SETTINGS TEST SUITE")
    print("#"*60)

    tests = [
        ("Defaults", test_defaults_without_env),
        ("Quoted API Key", test_quoted_api_key_in_env_file),
        ("Environment Overrides", test_environment_overrides),
        ("Invalid Values", test_invalid_values_rejected),
        ("Explicit Values", test_explicit_values),
    ]

    passed = 0
    failed = 0

    for name, test_func in tests:
        print(f"\n{name}")
        try:
            test_func()
            passed += 1
            print("  ✓ passed")
        except AssertionError as e:
            failed += 1
            print(f"  ✗ FAILED: {e}")
        except Exception as e:
            failed += 1
            print(f"  ✗ ERROR: {e}")

    print("\n" + "="*60)
    print(f"  Passed: {passed}  Failed: {failed}  Total: {len(tests)}")
    print("="*60)

    return failed == 0


if __name__ == "__main__":
    success = run_all_tests()
    sys.exit(0 if success else 1)
