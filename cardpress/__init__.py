"""
cardpress package

Personalizes the business-card template and publishes the result as a new
branch of a GitHub repository.

Key responsibilities are split across modules:
- `fields.py`: the field registry and input sanitizer
- `document.py` / `renderer.py`: writing field values into the HTML template
- `github_client.py`: isolated GitHub REST API interactions
- `publisher.py`: the branch-publish sequence (base ref -> branch -> README -> commit)
- `service.py`: the inbound preview operation; `api.py` and `cli.py` expose it
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
