"""
Silica Deployment Orchestrator
==============================

Deploys the Silica protocol contracts, wires their permissions and keeps the
address manifest read by the frontend and scripts.

Structure:
- descriptors: component set and wiring declarations
- resolver: deployment ordering
- ledger: RPC client and compiled artifacts
- manifest: deployment address book
- stages/: deployment, wiring and verification
"""

__version__ = "1.0.0"
__author__ = "Silica Protocol Team"
