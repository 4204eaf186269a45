"""Interactive git branch pruning tool.

Features:
- Walk local branches and confirm each deletion
- Never touch the current branch or the remote's default branch
- Optionally delete the upstream branch on the remote too
- Authenticate pushes with the GitHub CLI's stored login
"""

__version__ = "0.1.0"
