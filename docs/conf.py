import os
import sys

# Make the package importable for autodoc without installing it.
sys.path.insert(0, os.path.abspath('..'))

# -- Project information -----------------------------------------------------

project = 'DonorScope'
copyright = '2026, DonorScope Contributors'
author = 'DonorScope Contributors'

import donorscope
version = donorscope.__version__
release = donorscope.__version__

# -- General configuration ---------------------------------------------------

extensions = [
    'sphinx.ext.autodoc',
    'sphinx.ext.autosummary',
    'numpydoc',
    'sphinx_gallery.gen_gallery',
]

templates_path = ['_templates']
exclude_patterns = ['_build', 'Thumbs.db', '.DS_Store']

# -- Options for HTML output -------------------------------------------------

html_theme = 'pydata_sphinx_theme'
html_theme_options = {
    "show_prev_next": False,
    "navbar_align": "content",
    "search_bar_text": "Search the docs...",
}

# -- Extension configuration -------------------------------------------------

numpydoc_show_class_members = False

sphinx_gallery_conf = {
    'examples_dirs': 'examples',
    'gallery_dirs': 'auto_examples',
    'reference_url': {
        'donorscope': None,
    },
}
