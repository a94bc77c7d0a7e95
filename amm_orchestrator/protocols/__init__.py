"""
Protocol support for the AMM Orchestrator
"""
