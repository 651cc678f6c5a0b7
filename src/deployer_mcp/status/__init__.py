# ABOUTME: Status package initialization for the MCP App Deployer
# ABOUTME: Contains the three status checks and the report aggregator

"""
Status Package

    - findings.py: Finding and StatusReport value objects
    - readers.py: Git presence and ArgoCD health checks as findings
    - reachability.py: HTTP probe of the application's ingress host
    - aggregator.py: Runs all checks concurrently, renders the ordered report
"""
