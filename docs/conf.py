# Configuration file for the Sphinx documentation builder.
#
# This file is based on the Canonical Sphinx Docs Starter Pack.

# -- Project information -----------------------------------------------------
project = 'Deber'
copyright = '2025 Canonical Ltd.'
author = 'Canonical Ltd.'

# -- General configuration ---------------------------------------------------
extensions = [
    'myst_parser',
    'sphinx_copybutton',
]

myst_enable_extensions = [
    "colon_fence",
    "deflist",
]

source_suffix = {
    '.rst': 'restructuredtext',
    '.md': 'markdown',
}

exclude_patterns = ['_build', 'Thumbs.db', '.DS_Store']

# -- Options for HTML output -------------------------------------------------
html_title = 'Deber Documentation'
