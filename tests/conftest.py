"""Shared fixtures for scenegraph tests."""

import pytest

from scenegraph import SceneGraphSettings


@pytest.fixture
def settings() -> SceneGraphSettings:
    """Settings with tree validation after every structural change."""
    return SceneGraphSettings(debug_checks=True)
