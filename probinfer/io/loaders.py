"""
Loading model and query documents.

Each loader accepts either an already parsed dictionary or a path to a JSON
file, validates it against its schema and builds the model object.
"""

import json
from pathlib import Path
from typing import Any, Dict, Mapping, Union

from .schema import validate_chain_data, validate_hmm_data, validate_network_data, validate_query_data
from ..bayes import BayesianNetwork
from ..exceptions import InputError
from ..hmm import HiddenMarkovModel
from ..logger import get_logger
from ..markov import MarkovChain

logger = get_logger(__name__)

Source = Union[str, Path, Mapping[str, Any]]


def load_json(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load a JSON document from disk.

    Args:
        path: Path to the JSON file

    Returns:
        Parsed document

    Raises:
        InputError: If the file is missing, unreadable or not valid JSON
    """
    path = Path(path)
    if not path.exists():
        raise InputError(f"File not found: {path}")

    logger.debug(f"Loading JSON from: {path}")
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise InputError(f"Invalid JSON in {path}: {str(e)}")
    except OSError as e:
        raise InputError(f"Failed to read {path}: {str(e)}")


def _document(source: Source) -> Dict[str, Any]:
    if isinstance(source, Mapping):
        return dict(source)
    return load_json(source)


def load_network(source: Source, **kwargs) -> BayesianNetwork:
    """
    Build a Bayesian network from ``{nodes, edges, cpt}``.

    Raises:
        InputError: If the file cannot be read
        SchemaValidationError: If the document has the wrong shape
    """
    data = validate_network_data(_document(source))
    network = BayesianNetwork.from_dict(data, **kwargs)
    logger.debug(f"Loaded {network!r}")
    return network


def load_query(source: Source) -> Dict[str, Any]:
    """Load and validate a ``{query, evidence}`` document."""
    data = validate_query_data(_document(source))
    data.setdefault('evidence', {})
    return data


def load_chain(source: Source, **kwargs) -> MarkovChain:
    """Build a Markov chain from ``{states, transitionMatrix, initialDistribution?}``."""
    data = validate_chain_data(_document(source))
    chain = MarkovChain.from_dict(data, **kwargs)
    logger.debug(f"Loaded {chain!r}")
    return chain


def load_hmm(source: Source, **kwargs) -> HiddenMarkovModel:
    """Build an HMM from ``{hiddenStates, observations, transitionMatrix, emissionMatrix, initialProbabilities}``."""
    data = validate_hmm_data(_document(source))
    model = HiddenMarkovModel.from_dict(data, **kwargs)
    logger.debug(f"Loaded {model!r}")
    return model


def save_json(data: Mapping[str, Any], path: Union[str, Path]) -> None:
    """Write a document as indented JSON, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)
