# Configuration file for the Sphinx documentation builder.
# For the full list of built-in configuration values, see:
# https://www.sphinx-doc.org/en/master/usage/configuration.html
import os
import re
import sys
from datetime import datetime
from importlib.metadata import version as _pkg_version, PackageNotFoundError

# Add project root to sys.path so autodoc can import the package
sys.path.insert(0, os.path.abspath('../../'))

# -- Project information -----------------------------------------------------
project = 'sfpca'
author = 'Ching-Chuan Chen'
copyright = f'{datetime.now().year}, {author}'
# Get version from the installed distribution metadata
try:
    release = _pkg_version("sfpca")
except PackageNotFoundError:
    release = os.environ.get('SFPCA_VERSION', '0.1.0.dev0')
version = re.sub(r'(\d+\.\d+)\.\d+(.*)', r'\1\2', release)
version = re.sub(r'(\.dev\d+).*?$', r'\1', version)
print(f"{version} {release}")

# -- General configuration ---------------------------------------------------
extensions = [
    'sphinx.ext.autodoc',
    'sphinx.ext.autosummary',
    'sphinx.ext.intersphinx',
    'sphinx.ext.doctest',
    'sphinx.ext.viewcode',
    'sphinx.ext.mathjax',
    'numpydoc',
    'sphinx_copybutton',
]

templates_path = ['_templates']
exclude_patterns = ['_build']
language = 'en'

# Let autosummary generate stubs automatically
autosummary_generate = True
# Include members re-exported in __init__.py
autosummary_imported_members = True

# Show short names (hide module prefixes)
add_module_names = False

autodoc_default_options = {
    'members': True,
    'undoc-members': True,
    'inherited-members': False,
    'show-inheritance': True,
    'class-doc-from': 'class',
}

autodoc_typehints = 'signature'
autodoc_typehints_format = 'short'
autoclass_content = 'class'

numpydoc_show_class_members = False

# Intersphinx cross-references
intersphinx_mapping = {
    'python': ('https://docs.python.org/3/', None),
    'numpy': ('https://numpy.org/doc/stable/', None),
    'scipy': ('https://docs.scipy.org/doc/scipy/', None),
    'sklearn': ('https://scikit-learn.org/stable/', None),
    'sphinx': ('https://www.sphinx-doc.org/en/master/', None),
}

# -- HTML --------------------------------------------------------------------
html_theme = 'pydata_sphinx_theme'
html_theme_options = {
    'logo': {
        'text': 'sfpca',
    },
    'show_prev_next': False,
}
