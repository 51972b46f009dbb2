"""
Remote stages of a deployment run: orchestration, wiring and verification.
"""
