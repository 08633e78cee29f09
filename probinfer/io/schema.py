"""
JSON schemas for model and query documents.

The schemas check the shape of incoming documents before any model object is
built; semantic checks (row sums, cycles, unknown ids) are left to the models.
"""

from typing import Any, Dict

import jsonschema

from ..exceptions import SchemaValidationError
from ..logger import get_logger

logger = get_logger(__name__)


_IDENTIFIER = {
    "oneOf": [
        {"type": "string", "minLength": 1},
        {
            "type": "object",
            "properties": {
                "id": {"type": "string", "minLength": 1},
                "label": {"type": "string"}
            },
            "required": ["id"]
        }
    ]
}

_PROBABILITY_MATRIX = {
    "oneOf": [
        {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "additionalProperties": {"type": "number"}
            }
        },
        {
            "type": "array",
            "items": {"type": "array", "items": {"type": "number"}}
        }
    ]
}

_PROBABILITY_VECTOR = {
    "oneOf": [
        {"type": "object", "additionalProperties": {"type": "number"}},
        {"type": "array", "items": {"type": "number"}}
    ]
}


NETWORK_SCHEMA = {
    "type": "object",
    "properties": {
        "nodes": {
            "type": "array",
            "items": {
                "oneOf": [
                    {"type": "string", "minLength": 1},
                    {
                        "type": "object",
                        "properties": {
                            "id": {"type": "string", "minLength": 1},
                            "label": {"type": "string"},
                            "values": {
                                "type": "array",
                                "items": {"type": ["string", "boolean", "number"]},
                                "minItems": 1
                            }
                        },
                        "required": ["id"]
                    }
                ]
            },
            "description": "Variables of the network"
        },
        "edges": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "from": {"type": "string"},
                    "to": {"type": "string"}
                },
                "required": ["from", "to"]
            },
            "description": "Directed parent -> child edges"
        },
        "cpt": {
            "type": "object",
            "description": "Conditional probability tables keyed by node id"
        }
    },
    "required": ["nodes", "cpt"],
    "additionalProperties": True
}

QUERY_SCHEMA = {
    "type": "object",
    "properties": {
        "query": {"type": "string", "minLength": 1},
        "evidence": {
            "type": "object",
            "additionalProperties": {"type": ["string", "boolean", "number"]}
        },
        "method": {"type": "string", "enum": ["enumeration", "variable_elimination"]}
    },
    "required": ["query"],
    "additionalProperties": True
}

CHAIN_SCHEMA = {
    "type": "object",
    "properties": {
        "states": {"type": "array", "items": _IDENTIFIER, "minItems": 1},
        "transitionMatrix": _PROBABILITY_MATRIX,
        "initialDistribution": _PROBABILITY_VECTOR
    },
    "required": ["states", "transitionMatrix"],
    "additionalProperties": True
}

HMM_SCHEMA = {
    "type": "object",
    "properties": {
        "hiddenStates": {"type": "array", "items": _IDENTIFIER, "minItems": 1},
        "observations": {"type": "array", "items": _IDENTIFIER, "minItems": 1},
        "transitionMatrix": _PROBABILITY_MATRIX,
        "emissionMatrix": _PROBABILITY_MATRIX,
        "initialProbabilities": _PROBABILITY_VECTOR
    },
    "required": ["hiddenStates", "observations", "transitionMatrix",
                 "emissionMatrix", "initialProbabilities"],
    "additionalProperties": True
}

SCHEMAS = {
    'network': NETWORK_SCHEMA,
    'query': QUERY_SCHEMA,
    'chain': CHAIN_SCHEMA,
    'hmm': HMM_SCHEMA
}


def validate_data(data: Dict[str, Any], kind: str) -> Dict[str, Any]:
    """
    Validate a document against one of the schemas.

    Args:
        data: Parsed JSON document
        kind: ``'network'``, ``'query'``, ``'chain'`` or ``'hmm'``

    Returns:
        The document, unchanged

    Raises:
        SchemaValidationError: If the document does not match the schema
    """
    schema = SCHEMAS[kind]
    try:
        jsonschema.validate(data, schema)
    except jsonschema.ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise SchemaValidationError(f"Invalid {kind} data at {location}: {e.message}")

    logger.debug(f"Validated {kind} document")
    return data


def validate_network_data(data: Dict[str, Any]) -> Dict[str, Any]:
    return validate_data(data, 'network')


def validate_query_data(data: Dict[str, Any]) -> Dict[str, Any]:
    return validate_data(data, 'query')


def validate_chain_data(data: Dict[str, Any]) -> Dict[str, Any]:
    return validate_data(data, 'chain')


def validate_hmm_data(data: Dict[str, Any]) -> Dict[str, Any]:
    return validate_data(data, 'hmm')
