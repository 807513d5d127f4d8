"""Resolve a page's RDFa subjects to document nodes and store the metadata on them.

This package provides:
- Subject discovery for images, with optional per-site rules
- Rewriting of the main subject's identifier
- Merging of oEmbed records before graph extraction
- RDF/XML persistence into data-pagemeta-* attributes, kept fresh on location change
"""

from .document import Page
from .graph import Subject, SubjectGraph
from .models import InvocationContext, State, SubjectElement
from .orchestrator import PagePreparer
from .rules import SiteRules, SiteRulesRegistry

__version__ = "0.1.0"

__all__ = [
    "InvocationContext",
    "Page",
    "PagePreparer",
    "SiteRules",
    "SiteRulesRegistry",
    "State",
    "Subject",
    "SubjectElement",
    "SubjectGraph",
    "__version__",
]
