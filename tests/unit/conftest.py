"""
Unit Test Layer Configuration

Structure:
    tests/unit/
    ├── core/              Rate limiter, error taxonomy
    ├── shipping_service/  Weights, validators, statuses, rate selection
    ├── payment_service/   Signatures
    └── order_service/     Transitions, cart, totals

Usage:
    pytest tests/unit -v
    pytest tests/unit -m unit -v
"""
import os
import sys

# Add project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))
