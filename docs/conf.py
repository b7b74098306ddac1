# Configuration file for the Sphinx documentation builder.
#
# For the full list of built-in configuration values, see the documentation:
# https://www.sphinx-doc.org/en/master/usage/configuration.html

# -- Project information -----------------------------------------------------
# https://www.sphinx-doc.org/en/master/usage/configuration.html#project-information

project = "linearbandits"
copyright = "2026, linearbandits developers"
author = "linearbandits developers"
release = "0.1.0"

# -- General configuration ---------------------------------------------------
# https://www.sphinx-doc.org/en/master/usage/configuration.html#general-configuration

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.autosummary",
    "sphinx.ext.autodoc.typehints",
    "sphinx.ext.napoleon",
    "nbsphinx",
]
napoleon_preprocess_types = True
napoleon_type_aliases = {
    "NDArray": "np.typing.NDArray",
    "ArrayLike": "np.typing.ArrayLike",
    "TokenType": "typing.Hashable",
}
autodoc_type_aliases = {
    "NDArray": "np.typing.NDArray",
    "ArrayLike": "np.typing.ArrayLike",
}

autosummary_generate = True

templates_path = ["_templates"]
exclude_patterns = ["_build", "Thumbs.db", ".DS_Store"]


# -- Options for HTML output -------------------------------------------------
# https://www.sphinx-doc.org/en/master/usage/configuration.html#options-for-html-output

html_theme = "sphinx_rtd_theme"
html_static_path = ["_static"]
