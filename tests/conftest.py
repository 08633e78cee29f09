"""
Test configuration and fixtures for probinfer.

This file contains pytest configuration and shared fixtures
for testing the probinfer engine.
"""

import json

import pytest

from probinfer.config import reset_config


@pytest.fixture(autouse=True)
def restore_config():
    """Reset the global configuration after every test."""
    yield
    reset_config()


@pytest.fixture
def rain_network_data():
    """Two-node network Rain -> WetGrass with binary shorthand rows."""
    return {
        'nodes': [{'id': 'Rain', 'label': 'Rain'}, {'id': 'WetGrass', 'label': 'Wet grass'}],
        'edges': [{'from': 'Rain', 'to': 'WetGrass'}],
        'cpt': {
            'Rain': {'True': 0.2, 'False': 0.8},
            'WetGrass': {'Rain=True': 0.9, 'Rain=False': 0.1}
        }
    }


@pytest.fixture
def sprinkler_network_data():
    """Classic Cloudy/Sprinkler/Rain/WetGrass network using both key encodings."""
    return {
        'nodes': ['Cloudy', 'Sprinkler', 'Rain', 'WetGrass'],
        'edges': [
            {'from': 'Cloudy', 'to': 'Sprinkler'},
            {'from': 'Cloudy', 'to': 'Rain'},
            {'from': 'Sprinkler', 'to': 'WetGrass'},
            {'from': 'Rain', 'to': 'WetGrass'}
        ],
        'cpt': {
            'Cloudy': {'root': 0.5},
            'Sprinkler': {'Cloudy=True': 0.1, 'Cloudy=False': 0.5},
            'Rain': {
                json.dumps({'Cloudy': 'True'}): {'True': 0.8, 'False': 0.2},
                json.dumps({'Cloudy': 'False'}): {'True': 0.2, 'False': 0.8}
            },
            'WetGrass': {
                'Sprinkler=True,Rain=True': 0.99,
                'Rain=False,Sprinkler=True': 0.9,
                'Sprinkler=False,Rain=True': 0.9,
                'Sprinkler=False,Rain=False': 0.0
            }
        }
    }


@pytest.fixture
def weather_chain_data():
    """Sunny/Rainy chain with stationary distribution (5/6, 1/6)."""
    return {
        'states': ['Sunny', 'Rainy'],
        'transitionMatrix': {
            'Sunny': {'Sunny': 0.9, 'Rainy': 0.1},
            'Rainy': {'Sunny': 0.5, 'Rainy': 0.5}
        }
    }


@pytest.fixture
def gambler_chain_data():
    """Gambler's ruin on {0, 1, 2, 3} with absorbing ends and a fair coin."""
    return {
        'states': ['0', '1', '2', '3'],
        'transitionMatrix': [
            [1.0, 0.0, 0.0, 0.0],
            [0.5, 0.0, 0.5, 0.0],
            [0.0, 0.5, 0.0, 0.5],
            [0.0, 0.0, 0.0, 1.0]
        ]
    }


@pytest.fixture
def simple_hmm_data():
    """
    Two hidden states, two symbols.

    For observations [x, x]: alpha_0 = [0.54, 0.08], alpha_1 = [0.369, 0.042],
    likelihood 0.411, Viterbi path [s0, s0] with probability 0.3402.
    """
    return {
        'hiddenStates': [{'id': 's0', 'label': 'State 0'}, {'id': 's1', 'label': 'State 1'}],
        'observations': [{'id': 'x', 'label': 'X'}, {'id': 'y', 'label': 'Y'}],
        'transitionMatrix': {
            's0': {'s0': 0.7, 's1': 0.3},
            's1': {'s0': 0.4, 's1': 0.6}
        },
        'emissionMatrix': {
            's0': {'x': 0.9, 'y': 0.1},
            's1': {'x': 0.2, 'y': 0.8}
        },
        'initialProbabilities': {'s0': 0.6, 's1': 0.4}
    }


@pytest.fixture
def write_json(tmp_path):
    """Write a document to a JSON file under tmp_path and return its path."""
    def _write(name, data):
        path = tmp_path / name
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f)
        return path
    return _write


def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
