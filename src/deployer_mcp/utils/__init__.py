# ABOUTME: Utilities package initialization for the MCP App Deployer
# ABOUTME: Contains shared utilities for errors, safety, and logging

"""
Deployer Utilities Package

Shared utilities:
    - errors.py: DeployerError taxonomy (Setup, Auth, Git, Render, K8s, NotFound)
    - safety.py: Read-only and destructive guards, rate limiting, secret masking
    - logging.py: Structured logging with correlation IDs and audit trail
"""
