# ABOUTME: GitOps package initialization for the MCP App Deployer
# ABOUTME: Contains the repository workspace, manifest rendering, and publishing steps

"""
GitOps Package

The write path of the deployer, in the order a deploy runs it:
    - workspace.py: Disposable authenticated clone of the GitOps repository
    - manifests.py: Renders manifests + Application descriptor and stages them
    - publisher.py: Commits and pushes a non-empty change set
    - repository.py: Read-only shallow check for an Application descriptor
"""
