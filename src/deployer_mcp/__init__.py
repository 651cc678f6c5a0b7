# ABOUTME: MCP App Deployer package initialization
# ABOUTME: Exposes version information for the GitOps deployment server

"""
MCP App Deployer - GitOps application lifecycle via Model Context Protocol.

=============================================================================
WHAT DOES THIS PACKAGE DO?
=============================================================================

It is an MCP server with four tools an AI assistant can call:

    deploy(app_name, image)   write the app into the GitOps repository
    destroy(app_name)         remove the app from the GitOps repository
    update(app_name)          rolling-restart the app's Deployment
    status(app_name)          what Git, ArgoCD and the ingress say about the app

=============================================================================
HOW DOES A DEPLOY REACH THE CLUSTER?
=============================================================================

The server never applies manifests to Kubernetes itself. It changes Git,
and ArgoCD does the rest:

    deploy("checkout-svc", "registry/checkout:1.2")
        |
        v
    GitOps repository
        manifests/checkout-svc/deployment.yaml
        manifests/checkout-svc/service.yaml
        manifests/checkout-svc/ingress.yaml
        argocd-apps/checkout-svc.yaml      <- ArgoCD Application
        |
        v   (ArgoCD watches argocd-apps/ and syncs each Application)
    Kubernetes namespace "applications"
        |
        v
    http://checkout-svc.tykus.net

Because of that hop, status asks three sources separately: is the app in
Git, what does ArgoCD report, and does the ingress answer.

=============================================================================
PACKAGE STRUCTURE OVERVIEW
=============================================================================

deployer_mcp/
├── __init__.py          <- YOU ARE HERE: Package entry point
├── config.py            <- Settings from DEPLOYER_* / MCP_* environment
├── deployer.py          <- deploy/destroy/update/status workflows
├── server.py            <- MCP server, tools, resources, entry point
├── gitops/
│   ├── workspace.py     <- Disposable authenticated clone
│   ├── manifests.py     <- Template rendering and staging
│   ├── publisher.py     <- Commit and push
│   └── repository.py    <- Shallow read-only descriptor check
├── cluster/
│   └── client.py        <- ArgoCD Application lookup, rolling restart
├── status/
│   ├── findings.py      <- Finding / StatusReport
│   ├── readers.py       <- Git and ArgoCD checks
│   ├── reachability.py  <- Ingress HTTP probe
│   └── aggregator.py    <- Concurrent fan-out, ordered report
├── templates/           <- Jinja2 manifest templates
└── utils/
    ├── errors.py        <- DeployerError taxonomy
    ├── logging.py       <- Structured logging with audit trails
    └── safety.py        <- Guards, rate limiting, secret masking
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
