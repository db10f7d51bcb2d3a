"""Sphinx build settings for the EduBridge auth service API reference."""

from __future__ import annotations

import sys
from pathlib import Path

SERVICE_DIR = Path(__file__).resolve().parent.parent
REPO_DIR = SERVICE_DIR.parent.parent
sys.path[:0] = [str(SERVICE_DIR), str(REPO_DIR / "libs" / "python")]

project = "EduBridge Auth"
author = "EduBridge Platform Team"
copyright = f"2024, {author}"
version = release = "0.1.0"

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.intersphinx",
    "sphinx.ext.napoleon",
    "sphinx_autodoc_typehints",
]

root_doc = "index"
exclude_patterns: list[str] = ["_build"]

autodoc_default_options = {
    "members": True,
    "member-order": "bysource",
    "show-inheritance": True,
    "exclude-members": "model_config",
}
autodoc_typehints = "description"
always_document_param_types = True
typehints_fully_qualified = False
napoleon_google_docstring = False
napoleon_numpy_docstring = True
napoleon_use_rtype = False

intersphinx_mapping = {
    "python": ("https://docs.python.org/3", None),
    "pydantic": ("https://docs.pydantic.dev/latest", None),
    "jwt": ("https://pyjwt.readthedocs.io/en/stable", None),
    "psycopg": ("https://www.psycopg.org/psycopg3/docs", None),
}

html_theme = "alabaster"
html_title = f"{project} {release}"
html_theme_options = {
    "description": "Accounts, credentials and bearer tokens",
    "fixed_sidebar": True,
}
