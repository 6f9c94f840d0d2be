# Sphinx configuration for the avrokit documentation.
#
# Build with:  sphinx-build -b html docs docs/_build/html

import os
import sys

sys.path.insert(0, os.path.abspath(".."))

import avrokit  # noqa: E402

# -- Project information -----------------------------------------------------

project = "avrokit"
copyright = "2024, avrokit contributors"
author = "avrokit contributors"
release = avrokit.__version__
version = ".".join(release.split(".")[:2])

# -- General configuration ---------------------------------------------------

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",
    "sphinx.ext.intersphinx",
    "sphinx.ext.viewcode",
    "sphinx_autodoc_typehints",
]

exclude_patterns = ["_build"]

autodoc_default_options = {
    "members": True,
    "member-order": "bysource",
    "show-inheritance": True,
}
autoclass_content = "both"

napoleon_google_docstring = True
napoleon_numpy_docstring = False

typehints_fully_qualified = False
always_document_param_types = False

intersphinx_mapping = {
    "python": ("https://docs.python.org/3", None),
}

# -- Options for HTML output -------------------------------------------------

html_theme = "sphinx_rtd_theme"
html_theme_options = {
    "navigation_depth": 3,
}
