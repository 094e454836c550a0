# ABOUTME: release-sync package initialization
# ABOUTME: Exposes version information for the release tagging and manifest sync job

"""
release-sync - Unique image tags and GitOps manifest sync for every push.

=============================================================================
WHAT IS THIS PACKAGE?
=============================================================================

A one-shot job that runs inside a CI runner after every push to the
deployment branch. It exists because ArgoCD (and any other GitOps
controller) only notices a new deployment when the manifest in Git changes.
Pushing a new image under the same tag ("latest") changes nothing in Git,
so nothing gets rolled out.

The job therefore:

1. GENERATES a unique tag: <7-char commit sha>-<UTC timestamp>
2. GUARDS against loops: commits made by this job never trigger a release
3. PUBLISHES the image under the unique tag and under "latest"
4. REWRITES the image line of the deployment manifest, commits and pushes it

=============================================================================
PACKAGE STRUCTURE OVERVIEW
=============================================================================

release_sync/
├── __init__.py          <- YOU ARE HERE: Package entry point
├── config.py            <- Configuration management (env vars, settings)
├── tagging.py           <- Image tag generation and image references
├── guard.py             <- Self-trigger (loop prevention) checks
├── publish.py           <- Container build and registry push
├── manifest.py          <- Descriptor patching, commit and push
├── job.py               <- Step orchestration and CLI entry point
└── utils/
    ├── __init__.py      <- Utils subpackage marker
    ├── commands.py      <- Subprocess runner with secret masking
    ├── git.py           <- Explicitly configured git invocations
    └── logging.py       <- Structured logging with audit trails
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
