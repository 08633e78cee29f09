"""
Input/output module.

Schema validation and loaders for network, query, chain and HMM documents.
"""

from .schema import (
    NETWORK_SCHEMA,
    QUERY_SCHEMA,
    CHAIN_SCHEMA,
    HMM_SCHEMA,
    validate_data,
    validate_network_data,
    validate_query_data,
    validate_chain_data,
    validate_hmm_data
)
from .loaders import load_json, save_json, load_network, load_query, load_chain, load_hmm

__all__ = [
    "NETWORK_SCHEMA",
    "QUERY_SCHEMA",
    "CHAIN_SCHEMA",
    "HMM_SCHEMA",
    "validate_data",
    "validate_network_data",
    "validate_query_data",
    "validate_chain_data",
    "validate_hmm_data",
    "load_json",
    "save_json",
    "load_network",
    "load_query",
    "load_chain",
    "load_hmm"
]
