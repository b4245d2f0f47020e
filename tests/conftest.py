"""
PyTest configuration and fixtures for testing
"""

import pytest
import torch

from embedrec.config import RecommenderConfig


def pytest_configure(config):
    """Register custom test markers"""
    config.addinivalue_line("markers", "unit: Mark test as unit test")
    config.addinivalue_line("markers", "slow: Mark test as slow running")


@pytest.fixture(autouse=True)
def seed_torch():
    """Make random embedding initialization reproducible"""
    torch.manual_seed(42)


@pytest.fixture
def small_config():
    """Small, fast configuration for training tests"""
    return RecommenderConfig(epoch=3, embedding_size=8, learning_rate=0.05, batch_size=4)


@pytest.fixture
def movie_ratings():
    """Explicit ratings with clear taste clusters"""
    return [
        # sci-fi fans
        {"user": "alice_123", "entity": "interstellar_2014", "rating": 5.0},
        {"user": "alice_123", "entity": "blade_runner_2049", "rating": 4.8},
        {"user": "alice_123", "entity": "the_matrix_1999", "rating": 4.9},
        {"user": "alice_123", "entity": "romantic_comedy_2023", "rating": 2.1},
        {"user": "frank_action", "entity": "the_matrix_1999", "rating": 5.0},
        {"user": "frank_action", "entity": "blade_runner_2049", "rating": 4.5},
        {"user": "frank_action", "entity": "mad_max_fury_road", "rating": 4.9},
        # classics
        {"user": "bob_moviefan", "entity": "the_godfather_1972", "rating": 5.0},
        {"user": "bob_moviefan", "entity": "forrest_gump_1994", "rating": 4.8},
        {"user": "bob_moviefan", "entity": "the_matrix_1999", "rating": 3.2},
        {"user": "david_retro", "entity": "the_godfather_1972", "rating": 5.0},
        {"user": "david_retro", "entity": "casablanca_1942", "rating": 4.9},
        {"user": "david_retro", "entity": "blade_runner_2049", "rating": 3.0},
        # integer ids mixed in
        {"user": 101, "entity": 7, "rating": 4.0},
        {"user": 101, "entity": "casablanca_1942"},
    ]


@pytest.fixture
def new_ratings():
    """Second batch introducing one new user and two new entities"""
    return [
        {"user": "alice_123", "entity": "e9", "rating": 4.0},
        {"user": "grace_indie", "entity": "moonlight_2016", "rating": 5.0},
        {"user": "grace_indie", "entity": "the_godfather_1972", "rating": 3.5},
    ]
