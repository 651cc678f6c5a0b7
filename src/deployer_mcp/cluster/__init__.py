# ABOUTME: Cluster package initialization for the MCP App Deployer
# ABOUTME: Contains the Kubernetes API access used by status and update

"""
Cluster Package

    - client.py: ArgoCD Application lookup and Deployment rolling restart
"""
